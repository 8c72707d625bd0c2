# ABOUTME: Value types shared by the decoder, registry and scan pipeline
# ABOUTME: DeviceAddress keys metrics by raw bytes; SensorReading holds raw decoded fields
import re
from dataclasses import dataclass
from typing import Optional


_ADDRESS_PATTERN = re.compile(r'^[0-9A-Fa-f]{2}([:-][0-9A-Fa-f]{2}){5}$')


@dataclass(frozen=True)
class DeviceAddress:
    """6-byte Bluetooth hardware address."""
    value: bytes

    def __post_init__(self):
        if len(self.value) != 6:
            raise ValueError(f"Device address must be 6 bytes, got {len(self.value)}")

    @classmethod
    def parse(cls, text: str) -> 'DeviceAddress':
        """
        Parse a colon (or dash) separated MAC address string.

        Args:
            text: Address such as "C8:25:2D:8E:9C:80"

        Returns:
            DeviceAddress instance

        Raises:
            ValueError: If text is not a 6-octet hex address
        """
        if not _ADDRESS_PATTERN.match(text):
            raise ValueError(f"Invalid device address: {text!r}")
        return cls(bytes.fromhex(text.replace(':', '').replace('-', '')))

    def __str__(self) -> str:
        return ':'.join(f'{octet:02X}' for octet in self.value)


@dataclass(frozen=True)
class SensorReading:
    """Raw measurements decoded from one advertisement. None means not reported."""
    temperature: Optional[int] = None  # millidegree Celsius
    humidity: Optional[int] = None  # parts-per-10000 relative humidity
    pressure: Optional[int] = None  # pascal
    battery_potential: Optional[int] = None  # millivolt
    movement_counter: Optional[int] = None
    sequence_number: Optional[int] = None
