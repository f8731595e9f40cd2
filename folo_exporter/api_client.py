"""Thin HTTP wrapper around the Folo private API."""
import json
import logging
from dataclasses import dataclass, field

import requests

from .credentials import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.folo.is"
DEFAULT_WEB_URL = "https://app.folo.is"
DEFAULT_TIMEOUT = 30
AUTH_FAILURE_STATUSES = (401, 403)


class AuthenticationFailed(CredentialError):
    """The API rejected the credential."""

    def __init__(self, status: int | None, message: str):
        super().__init__(message)
        self.status = status


class ApiError(Exception):
    """A non-success reply that is not an authentication failure."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class InvalidResponse(Exception):
    """A success response whose body was not JSON."""

    def __init__(self, status: int, text: str):
        super().__init__(f"Response with status {status} is not valid JSON")
        self.status = status
        self.text = text


@dataclass
class ApiResponse:
    """Status and decoded JSON body of one API call."""

    ok: bool
    status: int
    payload: dict = field(default_factory=dict)


def _create_session(cookie_header: str | None, user_agent: str, web_url: str) -> requests.Session:
    session = requests.Session()
    session.headers.update({
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": user_agent,
        "Origin": web_url,
        "Referer": f"{web_url.rstrip('/')}/",
    })
    if cookie_header:
        session.headers["Cookie"] = cookie_header
    return session


class FoloClient:
    """POST-only JSON client bound to one credential.

    Network errors (``requests.RequestException``) propagate to the caller;
    the pagination and reconcile layers decide what they mean.
    """

    def __init__(
        self,
        cookie_header: str | None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "folo-exporter/0.1",
        web_url: str = DEFAULT_WEB_URL,
        session: requests.Session | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or _create_session(cookie_header, user_agent, web_url)

    def post(self, url: str, body: dict, strict_json: bool = False) -> ApiResponse:
        """POST ``body`` as JSON to an absolute URL.

        Args:
            url: Absolute endpoint URL
            body: JSON-serializable request body
            strict_json: Raise InvalidResponse when a success body is not JSON.
                Otherwise the raw text is kept under ``payload["raw"]``.
        """
        logger.debug(f"POST {url} {json.dumps(body)[:200]}")
        response = self.session.post(url, json=body, timeout=self.timeout)
        logger.debug(f"  -> {response.status_code}")

        payload = {}
        text = response.text
        if text:
            try:
                payload = response.json()
            except ValueError:
                if strict_json and response.ok:
                    raise InvalidResponse(response.status_code, text)
                payload = {"raw": text}
        if not isinstance(payload, dict):
            payload = {"data": payload} if isinstance(payload, list) else {"raw": payload}

        return ApiResponse(ok=response.ok, status=response.status_code, payload=payload)

    def post_entries(self, body: dict) -> ApiResponse:
        return self.post(f"{self.api_base}/entries", body, strict_json=True)

    def check_auth(self) -> int:
        """Check the entries endpoint with a one-item request.

        Returns:
            Number of sample entries returned.

        Raises:
            AuthenticationFailed: The credential was rejected (401 or 403).
            ApiError: Any other non-success status.
        """
        result = self.post(f"{self.api_base}/entries", {"limit": 1, "view": -1})
        if result.status in AUTH_FAILURE_STATUSES:
            raise AuthenticationFailed(
                result.status, f"Auth check failed with status {result.status}. Re-login required."
            )
        if not result.ok:
            raise ApiError(result.status, f"Auth check failed with server status {result.status}")
        data = result.payload.get("data")
        count = len(data) if isinstance(data, list) else 0
        logger.info(f"[AUTH] Auth OK (status {result.status}, sample entries: {count})")
        return count

    def close(self) -> None:
        self.session.close()
