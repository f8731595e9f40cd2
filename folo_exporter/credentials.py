"""Resolve the cookie header used to authenticate against the Folo API.

Sources, strictly in order: an explicit ``--cookie`` value, the ``FOLO_COOKIE``
environment variable, then cookies derived from a saved browser session
snapshot (``{"cookies": [{name, value, domain, path?, expires?}]}``).
"""
import json
import logging
import os
import time
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

COOKIE_ENV_VAR = "FOLO_COOKIE"


class CredentialError(Exception):
    """No usable credential could be produced."""


class NoCredential(CredentialError):
    pass


class SnapshotNotFound(CredentialError):
    pass


class SnapshotMalformed(CredentialError):
    pass


class NoMatchingCookies(CredentialError):
    pass


def load_storage_state(state_path: Path) -> dict:
    """Read a session snapshot file.

    Raises:
        SnapshotNotFound: If the file does not exist.
        SnapshotMalformed: If it is not JSON or has no ``cookies`` list.
    """
    if not state_path.exists():
        raise SnapshotNotFound(f"Storage state not found: {state_path}")

    try:
        parsed = json.loads(state_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotMalformed(f"Invalid storage state file ({e}): {state_path}") from e

    if not isinstance(parsed, dict) or not isinstance(parsed.get("cookies"), list):
        raise SnapshotMalformed(f"Invalid storage state file (cookies missing): {state_path}")
    return parsed


def cookie_domain_matches(cookie_domain: str | None, hostname: str) -> bool:
    if not cookie_domain:
        return False
    domain = cookie_domain[1:] if cookie_domain.startswith(".") else cookie_domain
    return hostname == domain or hostname.endswith(f".{domain}")


def cookie_path_matches(cookie_path: str | None, request_path: str) -> bool:
    return request_path.startswith(cookie_path or "/")


def cookie_is_live(expires, now: float) -> bool:
    """Session cookies (no expiry, or -1) always count as live."""
    if isinstance(expires, bool) or not isinstance(expires, (int, float)):
        return True
    if expires == -1:
        return True
    return expires > now


def build_cookie_header(storage_state: dict, url: str, now: float | None = None) -> str:
    """Join the snapshot cookies that apply to ``url`` as ``name=value; ...``.

    Snapshot cookie order is preserved. Returns an empty string when nothing
    matches.
    """
    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    request_path = parsed.path or "/"
    now = time.time() if now is None else now

    pairs = []
    for cookie in storage_state.get("cookies", []):
        if not isinstance(cookie, dict) or not cookie.get("name"):
            continue
        if not cookie_domain_matches(cookie.get("domain"), hostname):
            continue
        if not cookie_path_matches(cookie.get("path"), request_path):
            continue
        if not cookie_is_live(cookie.get("expires"), now):
            continue
        pairs.append(f"{cookie['name']}={cookie.get('value', '')}")

    return "; ".join(pairs)


def resolve_cookie_header(
    cookie_arg: str | None,
    state_path: Path | None,
    api_base: str,
    env: dict | None = None,
    now: float | None = None,
) -> str:
    """Pick the credential by precedence: explicit > environment > snapshot.

    Args:
        cookie_arg: Raw cookie header passed on the command line
        state_path: Session snapshot file, consulted only as a last resort
        api_base: API base URL; cookies are matched against ``{api_base}/entries``
        env: Environment mapping (defaults to ``os.environ``)
        now: Current time in epoch seconds, for expiry checks

    Raises:
        NoCredential: No explicit/env value and no snapshot path
        SnapshotNotFound, SnapshotMalformed: Snapshot unusable
        NoMatchingCookies: Snapshot holds no live cookie for the API host
    """
    if cookie_arg:
        logger.debug("[AUTH] Using cookie from command line")
        return cookie_arg

    env = os.environ if env is None else env
    env_cookie = env.get(COOKIE_ENV_VAR)
    if env_cookie:
        logger.debug(f"[AUTH] Using cookie from {COOKIE_ENV_VAR}")
        return env_cookie

    if state_path is None:
        raise NoCredential(
            f"No credential found. Pass --cookie, set {COOKIE_ENV_VAR} or provide a storage state file."
        )

    storage_state = load_storage_state(state_path)
    cookie_header = build_cookie_header(storage_state, f"{api_base.rstrip('/')}/entries", now=now)
    if not cookie_header:
        raise NoMatchingCookies("No matching cookies found in storage state. Please login again.")

    logger.debug(f"[AUTH] Using {len(cookie_header.split('; '))} cookie(s) from {state_path}")
    return cookie_header
