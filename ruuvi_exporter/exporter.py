# ABOUTME: HTTP server for exposing metrics and health endpoints
# ABOUTME: Provides /healthz, /metrics, and /status endpoints via aiohttp
from dataclasses import dataclass
from typing import Optional
from aiohttp import web

from ruuvi_exporter.config import AppConfig
from ruuvi_exporter.registry import SensorRegistry


@dataclass
class StatusTracker:
    """Counters from the listen and sweep loops for /status endpoint."""
    events_recorded: int = 0
    events_dropped: int = 0
    devices_evicted: int = 0
    last_event_timestamp: int = 0
    last_sweep_timestamp: int = 0

    def event_recorded(self, timestamp: int) -> None:
        self.events_recorded += 1
        self.last_event_timestamp = timestamp

    def event_dropped(self) -> None:
        self.events_dropped += 1

    def swept(self, timestamp: int, num_evicted: int) -> None:
        """Update sweep status with latest sweep results."""
        self.last_sweep_timestamp = timestamp
        self.devices_evicted += num_evicted


# AppKey for type-safe access to shared state
CONFIG_KEY = web.AppKey('config', AppConfig)
REGISTRY_KEY = web.AppKey('registry', SensorRegistry)
STATUS_KEY = web.AppKey('status', StatusTracker)


async def healthz_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        200 OK with "ok" body
    """
    return web.Response(text="ok", status=200)


async def metrics_handler(request: web.Request) -> web.Response:
    """
    Prometheus metrics endpoint.

    Returns:
        200 OK with Prometheus metrics in text format
    """
    metrics_output = request.app[REGISTRY_KEY].render()
    return web.Response(
        body=metrics_output,
        content_type='text/plain',
        charset='utf-8'
    )


async def status_handler(request: web.Request) -> web.Response:
    """
    Status endpoint returning tracking metadata.

    Returns:
        200 OK with JSON containing registry and loop status
    """
    config = request.app[CONFIG_KEY]
    registry = request.app[REGISTRY_KEY]
    status = request.app[STATUS_KEY]

    status_data = {
        "stale_timeout_seconds": config.stale_timeout_seconds,
        "cleanup_period_seconds": config.cleanup_period_seconds,
        "devices_tracked": registry.device_count(),
        "events_recorded": status.events_recorded,
        "events_dropped": status.events_dropped,
        "devices_evicted": status.devices_evicted,
        "last_event_timestamp": status.last_event_timestamp,
        "last_sweep_timestamp": status.last_sweep_timestamp
    }

    return web.json_response(status_data)


def create_app(
    config: AppConfig,
    registry: SensorRegistry,
    status_tracker: Optional[StatusTracker] = None
) -> web.Application:
    """
    Create and configure aiohttp application.

    Unregistered paths and methods get aiohttp's default 404/405.

    Args:
        config: Application configuration
        registry: Sensor registry serving /metrics
        status_tracker: Optional StatusTracker for /status endpoint

    Returns:
        Configured aiohttp Application instance
    """
    app = web.Application()

    app[CONFIG_KEY] = config
    app[REGISTRY_KEY] = registry
    app[STATUS_KEY] = status_tracker if status_tracker is not None else StatusTracker()

    app.router.add_get('/healthz', healthz_handler)
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/status', status_handler)

    return app
