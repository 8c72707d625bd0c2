# ABOUTME: BLE listening abstraction for continuous passive advertisement capture
# ABOUTME: Provides Protocol interface, bleak implementation and MockScanner for testing
from typing import AsyncGenerator, Optional, Protocol
import asyncio
from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData


# A busy environment advertises a few hundred frames per second
DEFAULT_MAX_QUEUE_SIZE = 1000


class AbstractScanner(Protocol):
    """Protocol for listeners that stream MAC address and payload tuples."""

    def listen(self) -> AsyncGenerator[tuple[str, bytes], None]:
        """
        Stream advertisements as they are received.

        Returns:
            Async generator of (mac_address, payload_bytes) tuples, where the
            payload is manufacturer-specific data prefixed with its
            little-endian company identifier
        """
        ...


class BleakScannerImpl:
    """
    Real BLE listener implementation using bleak library.

    Scans continuously and forwards every manufacturer data entry in
    arrival order. The buffer is bounded: when the consumer falls behind,
    the oldest advertisement is dropped to make room for the newest.
    """

    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE):
        """
        Initialize the BLE listener.

        Args:
            max_queue_size: Maximum number of buffered advertisements
        """
        self.queue: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        """
        Callback invoked when a BLE advertisement is detected.

        bleak splits the company identifier off as the dict key; it is
        prepended again so the payload matches the raw advertisement field.

        Args:
            device: BLE device information
            advertisement_data: Advertisement data including manufacturer data
        """
        for company_id, data in advertisement_data.manufacturer_data.items():
            payload = company_id.to_bytes(2, 'little') + bytes(data)
            if self.queue.full():
                self.queue.get_nowait()
                self.dropped += 1
            self.queue.put_nowait((device.address, payload))

    async def listen(self) -> AsyncGenerator[tuple[str, bytes], None]:
        """
        Scan until the consumer stops iterating.

        Raises:
            RuntimeError: If BLE adapter is unavailable or scanning fails to start
        """
        scanner = BleakScanner(detection_callback=self._detection_callback)

        try:
            await scanner.start()
        except Exception as e:
            raise RuntimeError(f"BLE scan failed: {e}") from e

        try:
            while True:
                yield await self.queue.get()
        finally:
            await scanner.stop()


class MockScanner:
    """
    Mock BLE listener for testing without hardware.

    Yields preconfigured (MAC, payload) tuples once, then stays silent.
    """

    def __init__(self, data: Optional[list[tuple[str, bytes]]] = None, delay: float = 0.0):
        """
        Initialize mock listener with test data.

        Args:
            data: List of (mac_address, payload_bytes) tuples to yield
            delay: Seconds to wait before each event
        """
        self.data = data or []
        self.delay = delay

    async def listen(self) -> AsyncGenerator[tuple[str, bytes], None]:
        for event in list(self.data):
            await asyncio.sleep(self.delay)
            yield event

        # Devices went quiet; keep the stream open like a real scan
        await asyncio.Event().wait()


def get_scanner(use_mock: bool = False, data: Optional[list[tuple[str, bytes]]] = None) -> AbstractScanner:
    """
    Factory function to get appropriate scanner implementation.

    Args:
        use_mock: If True, return MockScanner; otherwise return BleakScannerImpl
        data: Test data for MockScanner (only used when use_mock=True)

    Returns:
        Scanner instance implementing AbstractScanner protocol
    """
    if use_mock:
        return MockScanner(data)
    else:
        return BleakScannerImpl()
