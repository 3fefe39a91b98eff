# src/apidoc/config.py
"""Configuration system for apidoc.

This module handles loading settings from an INI file and environment
variables, providing sensible defaults, and computing derived paths for
the ~/.apidoc data directory.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import logging
import os

from apidoc.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    INITIAL_BACKOFF_SECONDS,
    MAX_RETRIES,
    MAX_TOKENS,
    REQUEST_TIMEOUT_SECONDS,
    TEMPERATURE,
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "llm": {
        "model": (str, DEFAULT_MODEL, None, None, "Model identifier sent to the endpoint"),
        "base_url": (str, DEFAULT_BASE_URL, None, None, "OpenAI-compatible API base URL"),
        "api_key": (str, "", None, None, "Bearer credential (empty disables the header)"),
        "max_tokens": (int, MAX_TOKENS, 0, None, "Max response tokens and batch budget"),
        "temperature": (float, TEMPERATURE, 0.0, 2.0, "Sampling temperature"),
        "timeout_seconds": (float, REQUEST_TIMEOUT_SECONDS, 1.0, 3600.0, "Per-request timeout"),
        "max_retries": (int, MAX_RETRIES, 0, 10, "Retries for transient failures"),
        "initial_backoff_seconds": (
            float,
            INITIAL_BACKOFF_SECONDS,
            0.0,
            60.0,
            "Wait before the first retry",
        ),
    },
    "paths": {
        "db_file": (str, "apidoc.db", None, None, "SQLite database file name"),
        "logs_dir": (str, "logs", None, None, "Logs directory name"),
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "APIDOC_LLM_API_KEY": ("llm", "api_key"),
    "APIDOC_LLM_BASE_URL": ("llm", "base_url"),
    "APIDOC_LLM_MODEL": ("llm", "model"),
    "APIDOC_LLM_MAX_TOKENS": ("llm", "max_tokens"),
    "APIDOC_LLM_TEMPERATURE": ("llm", "temperature"),
}


@dataclass(frozen=True)
class LLMConfig:
    """Chat-completion endpoint configuration.

    The first five fields are everything the generation pipeline needs;
    the rest tune the gateway's resilience.
    """

    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    max_tokens: int = MAX_TOKENS
    temperature: float = TEMPERATURE
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES
    initial_backoff_seconds: float = INITIAL_BACKOFF_SECONDS


@dataclass(frozen=True)
class PathsConfig:
    """Path names configuration."""

    db_file: str
    logs_dir: str


def _coerce(raw_value: str, typ: type) -> bool | int | float | str:
    """Convert a raw string to the schema type."""
    if typ is bool:
        return raw_value.lower() in ("true", "1", "yes", "on")
    if typ is int:
        return int(raw_value)
    if typ is float:
        return float(raw_value)
    return raw_value


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            raw_value = parser.get(section, key)
            try:
                value = _coerce(raw_value, typ)
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
                ) from e
        else:
            value = default

        _check_range(section, key, value, typ, min_val, max_val)
        result[key] = value

    return result


def _check_range(section: str, key: str, value: Any, typ: type, min_val: Any, max_val: Any) -> None:
    if typ in (int, float) and value is not None:
        if min_val is not None and value < min_val:
            raise ConfigError(f"Value for [{section}].{key} is {value}, but minimum is {min_val}")
        if max_val is not None and value > max_val:
            raise ConfigError(f"Value for [{section}].{key} is {value}, but maximum is {max_val}")


def _apply_env_overrides(values: dict[str, dict[str, Any]]) -> None:
    """Apply APIDOC_LLM_* environment overrides in place.

    Numeric overrides that fail to parse are ignored and the file/default
    value is kept.
    """
    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw_value = os.getenv(env_name)
        if raw_value is None:
            continue
        typ, _, min_val, max_val, _ = CONFIG_SCHEMA[section][key]
        try:
            value = _coerce(raw_value, typ)
        except ValueError:
            logger.warning(f"Ignoring {env_name}={raw_value!r}: expected {typ.__name__}")
            continue
        _check_range(section, key, value, typ, min_val, max_val)
        values[section][key] = value


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path
    llm: LLMConfig
    paths: PathsConfig

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database holding sessions and batch caches."""
        return self.data_dir / self.paths.db_file

    @property
    def llm_log_path(self) -> Path:
        """Path to the JSONL log of chat-completion exchanges."""
        return self.data_dir / self.paths.logs_dir / "llm-queries.jsonl"


def load_config(config_path: Optional[Path] = None, data_dir: Optional[Path] = None) -> Config:
    """Load configuration from an INI file and the environment.

    Args:
        config_path: Path to config file. If None or missing, schema defaults are used.
        data_dir: Data directory for derived paths. Defaults to ~/.apidoc.

    Returns:
        Config object with all sections populated.

    Raises:
        ConfigError: If validation fails.
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    values = {
        section: _load_section(parser, section, schema) for section, schema in CONFIG_SCHEMA.items()
    }
    _apply_env_overrides(values)

    return Config(
        data_dir=data_dir or Path.home() / ".apidoc",
        llm=LLMConfig(**values["llm"]),
        paths=PathsConfig(**values["paths"]),
    )


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from $APIDOC_HOME/config.ini and environment variables.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.
    """
    home_str = os.getenv("APIDOC_HOME")
    data_dir = Path(home_str) if home_str else Path.home() / ".apidoc"
    return load_config(data_dir / "config.ini", data_dir=data_dir)
