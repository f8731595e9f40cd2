"""Tests for cookie credential resolution."""
import json

import pytest

from folo_exporter.credentials import (
    NoCredential,
    NoMatchingCookies,
    SnapshotMalformed,
    SnapshotNotFound,
    build_cookie_header,
    cookie_domain_matches,
    cookie_is_live,
    resolve_cookie_header,
)

API_BASE = "https://api.folo.is"
NOW = 1_800_000_000


def _write_state(tmp_path, cookies):
    state_path = tmp_path / "storage-state.json"
    state_path.write_text(json.dumps({"cookies": cookies}), encoding="utf-8")
    return state_path


def test_explicit_cookie_wins(tmp_path):
    """--cookie beats the environment and the snapshot."""
    state_path = _write_state(tmp_path, [{"name": "s", "value": "snap", "domain": ".folo.is"}])

    header = resolve_cookie_header("a=explicit", state_path, API_BASE, env={"FOLO_COOKIE": "a=env"})

    assert header == "a=explicit"


def test_environment_beats_snapshot(tmp_path):
    """FOLO_COOKIE is used before the snapshot is consulted."""
    state_path = _write_state(tmp_path, [{"name": "s", "value": "snap", "domain": ".folo.is"}])

    header = resolve_cookie_header(None, state_path, API_BASE, env={"FOLO_COOKIE": "a=env"})

    assert header == "a=env"


def test_snapshot_cookies_joined_in_order(tmp_path):
    """Matching snapshot cookies are joined with '; ' in file order."""
    state_path = _write_state(tmp_path, [
        {"name": "first", "value": "1", "domain": ".folo.is", "path": "/"},
        {"name": "second", "value": "2", "domain": "api.folo.is"},
    ])

    header = resolve_cookie_header(None, state_path, API_BASE, env={}, now=NOW)

    assert header == "first=1; second=2"


def test_no_credential_at_all():
    """No explicit value, no env and no snapshot path."""
    with pytest.raises(NoCredential):
        resolve_cookie_header(None, None, API_BASE, env={})


def test_missing_snapshot(tmp_path):
    """A snapshot path that does not exist."""
    with pytest.raises(SnapshotNotFound):
        resolve_cookie_header(None, tmp_path / "missing.json", API_BASE, env={})


def test_snapshot_not_json(tmp_path):
    """Garbage in the snapshot file is reported as malformed."""
    state_path = tmp_path / "storage-state.json"
    state_path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotMalformed):
        resolve_cookie_header(None, state_path, API_BASE, env={})


def test_snapshot_without_cookie_list(tmp_path):
    """A JSON object lacking a cookies list is malformed."""
    state_path = tmp_path / "storage-state.json"
    state_path.write_text(json.dumps({"origins": []}), encoding="utf-8")

    with pytest.raises(SnapshotMalformed):
        resolve_cookie_header(None, state_path, API_BASE, env={})


def test_snapshot_without_matching_cookies(tmp_path):
    """Cookies for other hosts do not count."""
    state_path = _write_state(tmp_path, [{"name": "x", "value": "1", "domain": "example.com"}])

    with pytest.raises(NoMatchingCookies):
        resolve_cookie_header(None, state_path, API_BASE, env={}, now=NOW)


def test_domain_matching():
    """Leading dots are ignored and subdomains match."""
    assert cookie_domain_matches(".folo.is", "api.folo.is")
    assert cookie_domain_matches("folo.is", "folo.is")
    assert cookie_domain_matches("api.folo.is", "api.folo.is")
    assert not cookie_domain_matches("folo.is", "notfolo.is")
    assert not cookie_domain_matches("app.folo.is", "api.folo.is")
    assert not cookie_domain_matches(None, "api.folo.is")


def test_expiry():
    """Expired cookies are dropped; session cookies always live."""
    assert cookie_is_live(None, NOW)
    assert cookie_is_live(-1, NOW)
    assert cookie_is_live(NOW + 60, NOW)
    assert not cookie_is_live(NOW - 60, NOW)


def test_build_cookie_header_filters():
    """Domain, path and expiry filters all apply."""
    state = {"cookies": [
        {"name": "keep", "value": "1", "domain": ".folo.is", "expires": NOW + 3600},
        {"name": "expired", "value": "2", "domain": ".folo.is", "expires": NOW - 1},
        {"name": "wrong_path", "value": "3", "domain": ".folo.is", "path": "/admin"},
        {"name": "other_host", "value": "4", "domain": "follow.is"},
        {"value": "nameless", "domain": ".folo.is"},
        {"name": "session", "value": "5", "domain": "api.folo.is", "path": "/entries", "expires": -1},
    ]}

    header = build_cookie_header(state, "https://api.folo.is/entries", now=NOW)

    assert header == "keep=1; session=5"
