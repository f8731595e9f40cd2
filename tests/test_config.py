"""Tests for configuration loading."""
import pytest

from folo_exporter.config import (
    ConfigError,
    get_db_path,
    get_log_dir,
    get_state_path,
    load_config,
)


def test_missing_file_gives_defaults(tmp_path):
    """No config file means built-in defaults."""
    config = load_config(tmp_path / "missing.yaml")

    assert config["fetch"]["batch_size"] == 100
    assert config["fetch"]["max_requests"] == 50
    assert config["fetch"]["cursor_field"] == "publishedAfter"
    assert config["cache"]["stale_minutes"] == 30


def test_yaml_merges_over_defaults(tmp_path):
    """Only the keys present in the file are overridden."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "fetch:\n"
        "  max_requests: 10\n"
        "  cursor_field: insertedBefore\n"
        "api:\n"
        "  timeout: 5\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config["fetch"]["max_requests"] == 10
    assert config["fetch"]["cursor_field"] == "insertedBefore"
    assert config["fetch"]["batch_size"] == 100
    assert config["api"]["timeout"] == 5
    assert config["api"]["base_url"] == "https://api.folo.is"


def test_invalid_cursor_field(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("fetch:\n  cursor_field: updatedAfter\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_invalid_max_requests(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("fetch:\n  max_requests: 0\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_non_mapping_file(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_empty_hosts_rejected(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("mark_read:\n  hosts: []\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_paths_follow_home_override(tmp_path, monkeypatch):
    """FOLO_EXPORTER_HOME relocates state, database and logs."""
    monkeypatch.setenv("FOLO_EXPORTER_HOME", str(tmp_path))
    monkeypatch.delenv("FOLO_EXPORTER_CONFIG", raising=False)
    config = load_config()

    assert get_state_path(config) == tmp_path / "storage-state.json"
    assert get_db_path(config) == tmp_path / "data" / "exporter.db"
    assert get_log_dir() == tmp_path / "logs"


def test_state_override_beats_config(tmp_path, monkeypatch):
    """--state wins over storage.state_path."""
    monkeypatch.setenv("FOLO_EXPORTER_HOME", str(tmp_path))
    config = load_config(tmp_path / "missing.yaml")
    config["storage"]["state_path"] = str(tmp_path / "configured.json")

    assert get_state_path(config) == (tmp_path / "configured.json").resolve()
    assert get_state_path(config, str(tmp_path / "cli.json")) == (tmp_path / "cli.json").resolve()


@pytest.mark.parametrize("yaml_text", [
    "cache:\n  stale_minutes: soon\n",
    "cache:\n  stale_minutes: 0\n",
    "logging:\n  retention_days: forever\n",
    "logging:\n  retention_days: -1\n",
    "cache: 5\n",
])
def test_invalid_cache_and_logging_values(tmp_path, yaml_text):
    """Staleness and retention settings must be positive integers."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml_text, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)
