# ABOUTME: Ruuvi manufacturer data parser for BLE advertisements
# ABOUTME: Decodes RAWv1 (format 3) and RAWv2 (format 5) payloads into SensorReading
import struct
from typing import Optional

from ruuvi_exporter.models import SensorReading


RUUVI_MANUFACTURER_ID = 0x0499

# RAWv1: format, humidity, temp int, temp fraction, pressure, acc x/y/z, battery
_RAWV1 = struct.Struct('>BBBBHhhhH')
# RAWv2: format, temp, humidity, pressure, acc x/y/z, power info, movement, sequence, mac
_RAWV2 = struct.Struct('>BhHHhhhHBH6s')

PRESSURE_OFFSET_PA = 50000


def _parse_rawv1(data: bytes) -> SensorReading:
    (_, humidity, temp_int, temp_fraction, pressure,
     _acc_x, _acc_y, _acc_z, battery) = _RAWV1.unpack(data)

    # Sign-magnitude integer part, fraction in hundredths of a degree
    temperature = (temp_int & 0x7F) * 1000 + temp_fraction * 10
    if temp_int & 0x80:
        temperature = -temperature

    return SensorReading(
        temperature=temperature,
        humidity=humidity * 50,  # 0.5 % steps
        pressure=pressure + PRESSURE_OFFSET_PA,
        battery_potential=battery,
    )


def _parse_rawv2(data: bytes) -> SensorReading:
    (_, temperature, humidity, pressure, _acc_x, _acc_y, _acc_z,
     power_info, movement, sequence, _mac) = _RAWV2.unpack(data)

    # Upper 11 bits: battery above 1600 mV. Lower 5 bits: TX power (unused)
    battery_raw = power_info >> 5

    return SensorReading(
        temperature=None if temperature == -0x8000 else temperature * 5,  # 0.005 C steps
        humidity=None if humidity == 0xFFFF else round(humidity / 4),  # 0.0025 % steps
        pressure=None if pressure == 0xFFFF else pressure + PRESSURE_OFFSET_PA,
        battery_potential=None if battery_raw == 0x7FF else battery_raw + 1600,
        movement_counter=None if movement == 0xFF else movement,
        sequence_number=None if sequence == 0xFFFF else sequence,
    )


_FORMATS = {
    0x03: (_RAWV1.size, _parse_rawv1),
    0x05: (_RAWV2.size, _parse_rawv2),
}


def parse_ruuvi(data: bytes) -> SensorReading:
    """
    Parse Ruuvi manufacturer data (without the company identifier).

    Data formats: https://docs.ruuvi.com/communication/bluetooth-advertisements

    Args:
        data: Manufacturer data bytes, starting with the data format byte

    Returns:
        SensorReading with raw-unit fields; fields the format lacks or marks
        as unavailable are None

    Raises:
        ValueError: If the format is unsupported or the length is wrong
    """
    if not data:
        raise ValueError("Empty Ruuvi payload")

    data_format = data[0]
    if data_format not in _FORMATS:
        raise ValueError(f"Unsupported Ruuvi data format: {data_format:#04x}")

    size, parse = _FORMATS[data_format]
    if len(data) != size:
        raise ValueError(
            f"Invalid length for data format {data_format}: expected {size}, got {len(data)}"
        )

    return parse(data)


def decode(payload: bytes) -> Optional[SensorReading]:
    """
    Decode full manufacturer-specific data into a SensorReading.

    Args:
        payload: Little-endian company identifier followed by manufacturer data

    Returns:
        SensorReading, or None if the payload is not a valid Ruuvi advertisement
    """
    if len(payload) < 2:
        return None

    manufacturer_id = int.from_bytes(payload[0:2], 'little')
    if manufacturer_id != RUUVI_MANUFACTURER_ID:
        return None

    try:
        return parse_ruuvi(payload[2:])
    except ValueError:
        return None
