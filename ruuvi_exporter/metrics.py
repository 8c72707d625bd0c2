# ABOUTME: Prometheus gauge set for Ruuvi sensor data, one gauge per physical quantity
# ABOUTME: Each gauge is labelled by device address and converts raw reading units
from dataclasses import dataclass
from typing import Callable, Optional

from prometheus_client import CollectorRegistry, Gauge

from ruuvi_exporter.models import SensorReading


LABEL = 'address'


@dataclass(frozen=True)
class Quantity:
    """One exposed physical quantity."""
    field: str  # SensorReading attribute
    metric_name: str
    documentation: str
    convert: Callable[[int], float]


QUANTITIES = (
    Quantity('temperature', 'ruuvi_temperature',
             'temperature reported by ruuvi sensor', lambda value: value * 1e-3),
    Quantity('humidity', 'ruuvi_humidity',
             'humidity reported by ruuvi sensor', lambda value: value * 1e-4),
    Quantity('pressure', 'ruuvi_pressure',
             'pressure reported by ruuvi sensor', lambda value: value * 1e-3),
    Quantity('battery_potential', 'ruuvi_battery_potential',
             'battery_potential reported by ruuvi sensor', float),
    Quantity('movement_counter', 'ruuvi_movement_counter',
             'movement_counter reported by ruuvi sensor', int),
    Quantity('sequence_number', 'ruuvi_sequence_number',
             'sequence_number reported by ruuvi sensor', int),
)


def _remove_label(gauge: Gauge, label: str) -> None:
    try:
        gauge.remove(label)
    except KeyError:
        # Never set for this device, or already removed
        pass


class RuuviGauges:
    """
    The six Ruuvi gauges, registered on one CollectorRegistry.

    Not thread-safe as a set: callers needing all six gauges to change
    together must serialize access themselves.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Create gauges and register them.

        Args:
            registry: Registry to register on. A fresh one is created if None,
                so several instances can coexist.
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.gauges: dict[str, Gauge] = {
            quantity.metric_name: Gauge(
                quantity.metric_name,
                quantity.documentation,
                [LABEL],
                registry=self.registry
            )
            for quantity in QUANTITIES
        }

    def set_reading(self, label: str, reading: SensorReading) -> None:
        """
        Overwrite every quantity for a device from one reading.

        Quantities missing from the reading are removed for that device so
        a stale value is never exposed. All values are converted before any
        gauge changes, so a bad field leaves the device untouched.

        Args:
            label: Device address in canonical string form
            reading: Decoded sensor reading in raw units
        """
        updates = []
        for quantity in QUANTITIES:
            value = getattr(reading, quantity.field)
            converted = None if value is None else float(quantity.convert(value))
            updates.append((self.gauges[quantity.metric_name], converted))

        for gauge, value in updates:
            if value is None:
                _remove_label(gauge, label)
            else:
                gauge.labels(label).set(value)

    def remove(self, label: str) -> None:
        """Remove a device from all gauges. Unknown devices are ignored."""
        for gauge in self.gauges.values():
            _remove_label(gauge, label)

    def samples(self) -> list[tuple[str, str, float]]:
        """
        Collect current values of the six gauges only, even when the
        registry is shared with other collectors.

        Returns:
            List of (metric_name, address, value) tuples
        """
        result = []
        for gauge in self.gauges.values():
            for metric_family in gauge.collect():
                for sample in metric_family.samples:
                    result.append((sample.name, sample.labels[LABEL], sample.value))
        return result
