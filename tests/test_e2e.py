"""
End-to-end tests for the complete Ruuvi exporter application.

These tests verify the full application flow: listener → decoder → registry → sweep → HTTP endpoints.
"""
import asyncio
import logging
import pytest
from aiohttp.test_utils import TestClient, TestServer

from ruuvi_exporter.config import AppConfig
from ruuvi_exporter.scanner import MockScanner
from ruuvi_exporter.exporter import create_app, StatusTracker
from ruuvi_exporter.registry import SensorRegistry
from ruuvi_exporter.main import (
    start_background_tasks,
    cleanup_background_tasks,
    SCANNER_KEY,
    LOGGER_KEY,
)


SENSOR_1 = "C8:25:2D:8E:9C:80"
SENSOR_2 = "F4:A5:74:89:16:57"
RAWV2_PAYLOAD = bytes.fromhex('99040512FC5394C37C0004FFFC040CAC364200CDCBB8334C884F')
RAWV1_PAYLOAD = bytes.fromhex('990403291A1ECE1EFC18F94202CA0B53')


@pytest.fixture
def e2e_config():
    """Create test configuration with short timings."""
    return AppConfig(
        listen_port=8000,
        stale_timeout_seconds=0.5,
        cleanup_period_seconds=0.1,
        log_file="/tmp/test_e2e.log"
    )


@pytest.fixture
def e2e_logger():
    """Create a quiet logger for E2E tests."""
    logger = logging.getLogger("e2e_test")
    logger.setLevel(logging.INFO)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def build_app(config, scanner, logger):
    registry = SensorRegistry(
        stale_timeout=config.stale_timeout_seconds,
        cleanup_period=config.cleanup_period_seconds
    )
    app = create_app(config, registry, StatusTracker())
    app[SCANNER_KEY] = scanner
    app[LOGGER_KEY] = logger
    return app


@pytest.mark.asyncio
async def test_e2e_full_application_flow(e2e_config, e2e_logger):
    """
    Test the complete application flow end-to-end.

    Verifies that:
    1. Advertisements from two tags are decoded and exposed
    2. The RAWv1 tag exposes no counters
    3. /status counts tracked devices
    4. Both devices are evicted once they go silent
    """
    scanner = MockScanner(data=[
        (SENSOR_1, RAWV2_PAYLOAD),
        (SENSOR_2, RAWV1_PAYLOAD),
        (SENSOR_2, bytes.fromhex('4C000215')),  # iBeacon frame, dropped
    ])
    app = build_app(e2e_config, scanner, e2e_logger)

    await start_background_tasks(app)
    await asyncio.sleep(0.2)

    async with TestClient(TestServer(app)) as client:
        resp = await client.get('/metrics')
        assert resp.status == 200
        metrics_text = await resp.text()

        assert f'ruuvi_temperature{{address="{SENSOR_1}"}}' in metrics_text
        assert f'ruuvi_sequence_number{{address="{SENSOR_1}"}} 205.0' in metrics_text
        assert f'ruuvi_temperature{{address="{SENSOR_2}"}}' in metrics_text
        assert f'ruuvi_movement_counter{{address="{SENSOR_2}"}}' not in metrics_text

        status_data = await (await client.get('/status')).json()
        assert status_data['devices_tracked'] == 2
        assert status_data['events_recorded'] == 2
        assert status_data['events_dropped'] == 1

        # Tags stay silent past the timeout
        await asyncio.sleep(0.8)

        metrics_text = await (await client.get('/metrics')).text()
        assert SENSOR_1 not in metrics_text
        assert SENSOR_2 not in metrics_text

        status_data = await (await client.get('/status')).json()
        assert status_data['devices_tracked'] == 0
        assert status_data['devices_evicted'] == 2
        assert status_data['last_sweep_timestamp'] > 0

    await cleanup_background_tasks(app)


@pytest.mark.asyncio
async def test_e2e_continuously_advertising_tag_stays(e2e_config, e2e_logger):
    """
    Test that a tag advertising more often than the timeout is never evicted.
    """
    scanner = MockScanner(data=[(SENSOR_1, RAWV2_PAYLOAD)] * 30, delay=0.05)
    app = build_app(e2e_config, scanner, e2e_logger)

    await start_background_tasks(app)

    async with TestClient(TestServer(app)) as client:
        for _ in range(10):
            await asyncio.sleep(0.1)
            metrics_text = await (await client.get('/metrics')).text()
            assert f'ruuvi_temperature{{address="{SENSOR_1}"}}' in metrics_text

        status_data = await (await client.get('/status')).json()
        assert status_data['devices_evicted'] == 0

    await cleanup_background_tasks(app)


@pytest.mark.asyncio
async def test_e2e_no_devices_seen(e2e_config, e2e_logger):
    """
    Test E2E flow when no advertisements arrive.
    """
    app = build_app(e2e_config, MockScanner(data=[]), e2e_logger)

    await start_background_tasks(app)
    await asyncio.sleep(0.3)

    async with TestClient(TestServer(app)) as client:
        resp = await client.get('/healthz')
        assert resp.status == 200

        status_data = await (await client.get('/status')).json()
        assert status_data['devices_tracked'] == 0
        assert status_data['last_sweep_timestamp'] > 0

        resp = await client.get('/metrics')
        assert resp.status == 200

    await cleanup_background_tasks(app)


@pytest.mark.asyncio
async def test_e2e_concurrent_requests(e2e_config, e2e_logger):
    """
    Test that the application handles concurrent requests correctly.
    """
    scanner = MockScanner(data=[(SENSOR_1, RAWV2_PAYLOAD)])
    app = build_app(e2e_config, scanner, e2e_logger)

    await start_background_tasks(app)
    await asyncio.sleep(0.1)

    async with TestClient(TestServer(app)) as client:
        tasks = [
            client.get('/healthz'),
            client.get('/status'),
            client.get('/metrics'),
            client.get('/metrics'),
            client.get('/status'),
        ]

        responses = await asyncio.gather(*tasks)

        for resp in responses:
            assert resp.status == 200

    await cleanup_background_tasks(app)
