# ABOUTME: Main entry point for Ruuvi sensor Prometheus exporter
# ABOUTME: Wires together listener, parser, registry sweep loop, and HTTP server
import argparse
import asyncio
import contextlib
import logging
import time
from aiohttp import web

from ruuvi_exporter.config import load_config
from ruuvi_exporter.logger import get_logger
from ruuvi_exporter.models import DeviceAddress
from ruuvi_exporter.scanner import AbstractScanner, get_scanner
from ruuvi_exporter.parser import decode
from ruuvi_exporter.registry import SensorRegistry
from ruuvi_exporter.exporter import create_app, StatusTracker, REGISTRY_KEY, STATUS_KEY


RESTART_DELAY_SECONDS = 5

SCANNER_KEY = web.AppKey('scanner', AbstractScanner)
LOGGER_KEY = web.AppKey('logger', logging.Logger)
LISTEN_TASK_KEY = web.AppKey('listen_task', asyncio.Task)
SWEEP_TASK_KEY = web.AppKey('sweep_task', asyncio.Task)


async def listen_loop(scanner, registry, status_tracker, logger):
    """
    Background task that feeds decoded advertisements into the registry.

    Events are consumed one at a time in arrival order, so readings from
    the same device are recorded in the order they were received.
    Undecodable payloads and unparseable addresses are dropped.

    Args:
        scanner: Scanner instance (MockScanner or BleakScannerImpl)
        registry: SensorRegistry receiving readings
        status_tracker: StatusTracker for event counters
        logger: Logger instance
    """
    while True:
        try:
            logger.info("Starting BLE listener")
            async with contextlib.aclosing(scanner.listen()) as events:
                async for mac, payload in events:
                    reading = decode(payload)
                    if reading is None:
                        status_tracker.event_dropped()
                        continue

                    try:
                        address = DeviceAddress.parse(mac)
                    except ValueError:
                        logger.debug(f"Ignoring advertisement with unusable address {mac}")
                        status_tracker.event_dropped()
                        continue

                    registry.record(address, reading)
                    status_tracker.event_recorded(int(time.time()))

            logger.warning("BLE listener stopped unexpectedly")

        except Exception as e:
            logger.error(f"Error in listen loop: {e}", exc_info=True)

        # Sleep briefly before restarting the listener
        await asyncio.sleep(RESTART_DELAY_SECONDS)


async def sweep_loop(registry, status_tracker, logger):
    """
    Background task that evicts stale devices every cleanup period.

    Args:
        registry: SensorRegistry to sweep
        status_tracker: StatusTracker for sweep counters
        logger: Logger instance
    """
    while True:
        await asyncio.sleep(registry.cleanup_period)
        try:
            evicted = registry.sweep()
            status_tracker.swept(int(time.time()), len(evicted))
        except Exception as e:
            logger.error(f"Error in sweep loop: {e}", exc_info=True)


async def start_background_tasks(app):
    """
    Startup handler that launches the listen and sweep loops.

    Args:
        app: aiohttp Application instance
    """
    registry = app[REGISTRY_KEY]
    status_tracker = app[STATUS_KEY]
    logger = app[LOGGER_KEY]

    app[LISTEN_TASK_KEY] = asyncio.create_task(
        listen_loop(app[SCANNER_KEY], registry, status_tracker, logger)
    )
    app[SWEEP_TASK_KEY] = asyncio.create_task(
        sweep_loop(registry, status_tracker, logger)
    )


async def cleanup_background_tasks(app):
    """
    Cleanup handler that cancels the background loops.

    Args:
        app: aiohttp Application instance
    """
    for key in (LISTEN_TASK_KEY, SWEEP_TASK_KEY):
        app[key].cancel()
        try:
            await app[key]
        except asyncio.CancelledError:
            pass  # Expected when cancelling the task


def main():
    """
    Main entry point. Parses CLI arguments, loads config, and starts the server.
    """
    parser = argparse.ArgumentParser(
        description='Ruuvi Sensor Prometheus Exporter'
    )
    parser.add_argument(
        '--config',
        type=str,
        required=True,
        help='Path to config YAML file'
    )
    parser.add_argument(
        '--mock-scanner',
        action='store_true',
        help='Use MockScanner instead of real BLE scanner (for testing)'
    )

    args = parser.parse_args()

    config = load_config(args.config)

    logger = get_logger(config)
    logger.info("Starting Ruuvi Sensor Prometheus Exporter")
    logger.info(f"Config loaded from {args.config}")

    scanner = get_scanner(use_mock=args.mock_scanner)
    if args.mock_scanner:
        logger.info("Using MockScanner (no real BLE hardware)")
    else:
        logger.info("Using BleakScanner for real BLE devices")

    registry = SensorRegistry(
        stale_timeout=config.stale_timeout_seconds,
        cleanup_period=config.cleanup_period_seconds
    )
    logger.info(
        f"Removing devices silent for {config.stale_timeout_seconds}s, "
        f"checking every {config.cleanup_period_seconds}s"
    )

    app = create_app(config, registry, StatusTracker())
    app[SCANNER_KEY] = scanner
    app[LOGGER_KEY] = logger

    app.on_startup.append(start_background_tasks)
    app.on_cleanup.append(cleanup_background_tasks)

    logger.info(f"Starting HTTP server on port {config.listen_port}")
    web.run_app(app, host='0.0.0.0', port=config.listen_port)


if __name__ == '__main__':
    main()
