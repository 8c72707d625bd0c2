# ABOUTME: Configuration parser for Ruuvi exporter application
# ABOUTME: Loads and validates YAML config with listen port and staleness timing
from dataclasses import dataclass

import yaml


DEFAULT_LOG_FILE = "./logs/ruuvi_exporter.log"


@dataclass
class AppConfig:
    """Application configuration loaded from YAML file."""
    listen_port: int
    stale_timeout_seconds: float = 10.0
    cleanup_period_seconds: float = 1.0
    log_file: str = DEFAULT_LOG_FILE


def _positive_seconds(data: dict, key: str, default: float) -> float:
    value = data.get(key, default)
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number of seconds")
    if value <= 0:
        raise ValueError(f"'{key}' must be positive")
    return float(value)


def load_config(path: str) -> AppConfig:
    """
    Load and validate application configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        AppConfig instance with validated configuration

    Raises:
        ValueError: If config is invalid or missing required keys
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValueError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a YAML mapping")

    required_keys = ['listen_port']
    missing_keys = [key for key in required_keys if key not in data]
    if missing_keys:
        raise ValueError(f"Missing required config keys: {', '.join(missing_keys)}")

    if isinstance(data['listen_port'], bool) or not isinstance(data['listen_port'], int):
        raise ValueError("'listen_port' must be an integer")

    return AppConfig(
        listen_port=data['listen_port'],
        stale_timeout_seconds=_positive_seconds(data, 'stale_timeout_seconds', 10.0),
        cleanup_period_seconds=_positive_seconds(data, 'cleanup_period_seconds', 1.0),
        log_file=data.get('log_file', DEFAULT_LOG_FILE)
    )
