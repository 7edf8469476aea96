"""Configuration loading from a YAML file and environment variables.

Precedence, lowest to highest:

1. Built-in defaults.
2. ``~/.gigclaw/config.yaml`` (keys ``api-url``, ``api-key``, ``timeout``,
   ``max-retries``, ``refresh-interval``).
3. ``.env`` file and ``GIGCLAW_*`` environment variables.

Command-line flags are applied on top by :func:`gigclaw.app.main` through
:func:`dataclasses.replace`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from gigclaw.client import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_SECONDS, ClientConfig
from gigclaw.errors import ConfigurationError

DEFAULT_API_URL = "https://gigclaw-production.up.railway.app"
DEFAULT_REFRESH_INTERVAL = 30.0
DEFAULT_CONFIG_FILE = Path.home() / ".gigclaw" / "config.yaml"

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class Config:
    """Application configuration.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation.
    """

    # Marketplace API
    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS  # seconds per attempt
    max_retries: int = DEFAULT_MAX_RETRIES

    # Dashboard
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL  # seconds

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Path | None = None

    # Where values were read from, for diagnostics
    config_file: Path | None = None

    def client_config(self) -> ClientConfig:
        """Build the immutable client configuration.

        Raises:
            ConfigurationError: If the API URL is empty.
        """
        return ClientConfig(
            base_url=self.api_url,
            api_key=self.api_key,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )


def _parse_positive_float(value: Any, name: str, default: float) -> float:
    """Parse a value as a positive float, falling back to ``default`` with a warning."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %s",
            name,
            value,
            default,
        )
        return default
    if parsed <= 0:
        logging.warning("Invalid %s: %s is not positive, using default %s", name, parsed, default)
        return default
    return parsed


def _parse_non_negative_int(value: Any, name: str, default: int) -> int:
    """Parse a value as a non-negative integer, falling back to ``default`` with a warning."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default
    if parsed < 0:
        logging.warning("Invalid %s: %d is negative, using default %d", name, parsed, default)
        return default
    return parsed


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Logs a warning and returns ``default`` if the value is not a known level.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid GIGCLAW_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _parse_bool(value: str) -> bool:
    """Return True for "true", "1" or "yes" (case-insensitive)."""
    return value.lower() in ("true", "1", "yes")


def load_config_file(path: Path) -> dict[str, Any]:
    """Read the YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Mapping of configuration keys, empty if the file does not exist.

    Raises:
        ConfigurationError: If the file cannot be read or is not a YAML mapping.
    """
    if not path.is_file():
        return {}
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(env_file: Path | None = None, config_file: Path | None = None) -> Config:
    """Load configuration from the YAML file and environment variables.

    Args:
        env_file: Optional path to a .env file. If not provided, looks for
            .env in the current directory.
        config_file: Optional YAML file. Defaults to ``~/.gigclaw/config.yaml``.
            An explicitly given file that does not exist is an error.

    Returns:
        Config object with loaded values.

    Raises:
        ConfigurationError: If the YAML file is unreadable or malformed.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    if config_file is not None and not config_file.is_file():
        raise ConfigurationError(f"Config file not found: {config_file}")
    yaml_path = config_file or DEFAULT_CONFIG_FILE
    file_values = load_config_file(yaml_path)

    def setting(env_var: str, file_key: str, default: Any) -> Any:
        env_value = os.getenv(env_var)
        if env_value is not None and env_value != "":
            return env_value
        file_value = file_values.get(file_key)
        if file_value is not None:
            return file_value
        return default

    api_url = str(setting("GIGCLAW_API_URL", "api-url", DEFAULT_API_URL)).strip()
    api_key = str(setting("GIGCLAW_API_KEY", "api-key", "")).strip()

    timeout = _parse_positive_float(
        setting("GIGCLAW_TIMEOUT", "timeout", DEFAULT_TIMEOUT_SECONDS),
        "GIGCLAW_TIMEOUT",
        DEFAULT_TIMEOUT_SECONDS,
    )
    max_retries = _parse_non_negative_int(
        setting("GIGCLAW_MAX_RETRIES", "max-retries", DEFAULT_MAX_RETRIES),
        "GIGCLAW_MAX_RETRIES",
        DEFAULT_MAX_RETRIES,
    )
    refresh_interval = _parse_positive_float(
        setting("GIGCLAW_REFRESH_INTERVAL", "refresh-interval", DEFAULT_REFRESH_INTERVAL),
        "GIGCLAW_REFRESH_INTERVAL",
        DEFAULT_REFRESH_INTERVAL,
    )

    # GIGCLAW_DEBUG=true forces debug output regardless of GIGCLAW_LOG_LEVEL
    if _parse_bool(os.getenv("GIGCLAW_DEBUG", "")):
        log_level = "DEBUG"
    else:
        log_level = _validate_log_level(os.getenv("GIGCLAW_LOG_LEVEL", "INFO"))

    log_json = _parse_bool(os.getenv("GIGCLAW_LOG_JSON", ""))
    log_file_str = os.getenv("GIGCLAW_LOG_FILE", "")
    log_file = Path(log_file_str).expanduser() if log_file_str else None

    return Config(
        api_url=api_url,
        api_key=api_key,
        timeout=timeout,
        max_retries=max_retries,
        refresh_interval=refresh_interval,
        log_level=log_level,
        log_json=log_json,
        log_file=log_file,
        config_file=yaml_path if file_values else None,
    )
