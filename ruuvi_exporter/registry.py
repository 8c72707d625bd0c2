# ABOUTME: Staleness-tracked registry of Ruuvi sensor metrics
# ABOUTME: Records readings per device and sweeps out devices that stopped advertising
import logging
import threading
import time
from typing import Callable, Optional

from prometheus_client import CollectorRegistry, generate_latest

from ruuvi_exporter.metrics import RuuviGauges
from ruuvi_exporter.models import DeviceAddress, SensorReading


# Run cleanup for old sensors every second
DEFAULT_CLEANUP_PERIOD = 1.0
# Consider tags lost if they haven't been seen for 10 seconds
DEFAULT_STALE_TIMEOUT = 10.0

logger = logging.getLogger(__name__)


class SensorRegistry:
    """
    Single authoritative store for device metrics and freshness.

    The gauges and the last-seen table are one aggregate guarded by one
    lock, so record() and sweep() are serialized: a record that returns
    before a sweep starts is always visible to that sweep.
    """

    def __init__(
        self,
        stale_timeout: float = DEFAULT_STALE_TIMEOUT,
        cleanup_period: float = DEFAULT_CLEANUP_PERIOD,
        clock: Callable[[], float] = time.monotonic,
        registry: Optional[CollectorRegistry] = None
    ):
        """
        Initialize an empty registry.

        Args:
            stale_timeout: Seconds of silence after which a device is evicted
            cleanup_period: Seconds between sweeps (used by the sweep loop)
            clock: Monotonic time source, injectable for tests
            registry: Prometheus registry for the gauges (fresh if None)
        """
        self.stale_timeout = stale_timeout
        self.cleanup_period = cleanup_period
        self._clock = clock
        self._gauges = RuuviGauges(registry)
        self._last_seen: dict[DeviceAddress, float] = {}
        self._lock = threading.Lock()

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._gauges.registry

    def record(self, address: DeviceAddress, reading: SensorReading) -> None:
        """
        Update the exposed values for one device and mark it as seen now.

        Every quantity is overwritten, or removed if the reading lacks it.
        Unknown addresses are registered implicitly.

        Args:
            address: Device the advertisement came from
            reading: Decoded sensor reading
        """
        label = str(address)
        with self._lock:
            self._gauges.set_reading(label, reading)
            is_new = address not in self._last_seen
            self._last_seen[address] = self._clock()

        if is_new:
            logger.info(f"Tracking new device {label}")

    def sweep(self) -> list[DeviceAddress]:
        """
        Evict every device not seen within the stale timeout.

        Visits the whole last-seen table on each call.

        Returns:
            Addresses evicted by this sweep
        """
        with self._lock:
            now = self._clock()
            stale = [
                address for address, seen in self._last_seen.items()
                if now - seen >= self.stale_timeout
            ]
            for address in stale:
                self._gauges.remove(str(address))
                del self._last_seen[address]

        for address in stale:
            logger.info(f"Device {address} not seen for {self.stale_timeout}s, removed metrics")

        return stale

    def gather(self) -> list[tuple[str, str, float]]:
        """
        Snapshot of the current metric state.

        Returns:
            List of (metric_name, address, value) tuples
        """
        with self._lock:
            return self._gauges.samples()

    def render(self) -> bytes:
        """Prometheus text exposition of the current metric state."""
        with self._lock:
            return generate_latest(self._gauges.registry)

    def device_count(self) -> int:
        with self._lock:
            return len(self._last_seen)

    def last_seen(self, address: DeviceAddress) -> Optional[float]:
        """Clock value of the latest record() for address, or None if not tracked."""
        with self._lock:
            return self._last_seen.get(address)
