# ABOUTME: File-only logging setup for Ruuvi exporter application
# ABOUTME: Configures TimedRotatingFileHandler with daily rotation on the package logger
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from ruuvi_exporter.config import AppConfig


LOGGER_NAME = 'ruuvi_exporter'


def get_logger(app_config: AppConfig) -> logging.Logger:
    """
    Create and configure the package logger.

    Module loggers such as 'ruuvi_exporter.registry' propagate to it.

    Args:
        app_config: Application configuration containing log file path

    Returns:
        Configured logger instance with file handler
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Avoid adding duplicate handlers if get_logger is called multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    log_path = Path(app_config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Rotate daily at midnight, keep 30 days
    handler = TimedRotatingFileHandler(
        app_config.log_file,
        when='midnight',
        interval=1,
        backupCount=30
    )
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(handler)

    return logger
