"""Configuration loading for folo-exporter."""
import copy
import os
from pathlib import Path

import yaml

API_MAX_LIMIT = 100
CURSOR_FIELDS = ("publishedAfter", "publishedBefore", "insertedBefore")

DEFAULT_CONFIG = {
    "api": {
        "base_url": "https://api.folo.is",
        "web_url": "https://app.folo.is",
        "timeout": 30,
        "user_agent": "folo-exporter/0.1",
    },
    "fetch": {
        "batch_size": API_MAX_LIMIT,
        "max_requests": 50,
        "cursor_field": "publishedAfter",
    },
    "mark_read": {
        "hosts": ["https://api.folo.is", "https://api.follow.is"],
    },
    "cache": {"stale_minutes": 30},
    "storage": {"state_path": None, "db_path": None},
    "logging": {"retention_days": 30},
}


class ConfigError(ValueError):
    """Raised for invalid configuration values."""


def get_project_dir() -> Path:
    """Directory holding config, session state, the database and logs."""
    override = os.environ.get("FOLO_EXPORTER_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".folo-exporter"


def get_config_path() -> Path:
    override = os.environ.get("FOLO_EXPORTER_CONFIG")
    if override:
        return Path(override).expanduser()
    return get_project_dir() / "config.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict:
    """Load YAML config merged over the built-in defaults.

    Args:
        path: Config file path. Defaults to ``get_config_path()``; a missing
            file yields the defaults.

    Raises:
        ConfigError: If the file is not a mapping or holds invalid values.
    """
    config_path = path or get_config_path()
    user_config = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")

    config = _deep_merge(DEFAULT_CONFIG, user_config)
    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    for section in DEFAULT_CONFIG:
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"Config section {section!r} must be a mapping")

    fetch = config["fetch"]
    cursor_field = fetch.get("cursor_field")
    if cursor_field not in CURSOR_FIELDS:
        raise ConfigError(
            f"Invalid fetch.cursor_field: {cursor_field!r} (expected one of {', '.join(CURSOR_FIELDS)})"
        )
    for section, key in (
        ("fetch", "batch_size"),
        ("fetch", "max_requests"),
        ("cache", "stale_minutes"),
        ("logging", "retention_days"),
    ):
        value = config[section].get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ConfigError(f"Invalid {section}.{key}: {value!r}")

    hosts = config["mark_read"].get("hosts")
    if not isinstance(hosts, list) or not hosts:
        raise ConfigError("mark_read.hosts must be a non-empty list")


def resolve_path(raw: str | None, default: Path) -> Path:
    """Expand ``~`` and make relative paths absolute; fall back to ``default``."""
    if not raw:
        return default
    return Path(raw).expanduser().resolve()


def get_state_path(config: dict, override: str | None = None) -> Path:
    """Session snapshot path (``--state`` beats the config file)."""
    return resolve_path(override or config["storage"].get("state_path"),
                        get_project_dir() / "storage-state.json")


def get_db_path(config: dict) -> Path:
    return resolve_path(config["storage"].get("db_path"), get_project_dir() / "data" / "exporter.db")


def get_log_dir() -> Path:
    return get_project_dir() / "logs"
