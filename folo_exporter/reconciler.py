"""Mark collected articles as read on the server.

The mark-as-read endpoint differs between deployments, so the reconciler
tries an ordered list of candidate endpoints, each at most once, and keeps
the first one that answers with a success status. This is capability
discovery, not retrying: there is no backoff and no second attempt.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

import requests

from .api_client import ApiResponse
from .models import MarkReadResult

logger = logging.getLogger(__name__)


class PostClient(Protocol):
    def post(self, url: str, body: dict) -> ApiResponse: ...


class SnapshotStore(Protocol):
    def clear(self) -> None: ...


class MarkedReadSet(Protocol):
    def __contains__(self, entry_id: object) -> bool: ...

    def update(self, entry_ids: Iterable[str]) -> None: ...


@dataclass(frozen=True)
class EndpointCandidate:
    """One guess at the mark-as-read endpoint."""

    host: str
    path: str
    method: str = "POST"
    inbox_flag: bool = True  # send ``isInbox: false`` alongside the ids

    @property
    def url(self) -> str:
        return f"{self.host.rstrip('/')}{self.path}"

    def build_body(self, entry_ids: list[str]) -> dict:
        body = {"entryIds": entry_ids}
        if self.inbox_flag:
            body["isInbox"] = False
        return body


@dataclass
class Attempt:
    endpoint: str
    status: int | None
    error: str | None = None


class ReconcileFailed(Exception):
    """Every candidate endpoint failed."""

    def __init__(self, attempts: list[Attempt], message: str | None = None):
        self.attempts = attempts
        if message is None:
            details = ", ".join(
                f"{a.endpoint} -> {a.status if a.status is not None else a.error}" for a in attempts
            )
            message = f"Mark as read failed ({details})"
        super().__init__(message)


class EndpointUnavailable(ReconcileFailed):
    """Every candidate answered 404: the feature is not exposed for this account."""

    def __init__(self, attempts: list[Attempt]):
        super().__init__(attempts, "Mark as read is not available for this account or deployment")


def build_candidates(hosts: list[str]) -> list[EndpointCandidate]:
    """``/reads`` on every known host, then the legacy ``/reads/markAsRead``."""
    candidates = [EndpointCandidate(host=host, path="/reads") for host in hosts]
    candidates.append(EndpointCandidate(host=hosts[0], path="/reads/markAsRead", inbox_flag=False))
    return candidates


def pending_ids(entry_ids: Iterable[str | None], marked_read: MarkedReadSet) -> list[str]:
    """Drop missing ids, duplicates and ids already acknowledged; keep order."""
    pending = []
    seen = set()
    for entry_id in entry_ids:
        if not entry_id or entry_id in seen or entry_id in marked_read:
            continue
        seen.add(entry_id)
        pending.append(entry_id)
    return pending


class MarkReadReconciler:
    """Submit article ids to the first working mark-as-read endpoint.

    The marked-read set and snapshot store are shared state; callers running
    several sessions in parallel must give each its own or serialize calls.
    """

    def __init__(
        self,
        client: PostClient,
        candidates: list[EndpointCandidate],
        cache: SnapshotStore | None = None,
    ):
        if not candidates:
            raise ValueError("At least one endpoint candidate is required")
        self.client = client
        self.candidates = candidates
        self.cache = cache

    def reconcile(self, entry_ids: Iterable[str | None], marked_read: MarkedReadSet) -> MarkReadResult:
        """Mark ``entry_ids`` read, skipping those already in ``marked_read``.

        Returns:
            MarkReadResult; ``count`` is 0 when there was nothing to submit.

        Raises:
            EndpointUnavailable: Every candidate answered 404.
            ReconcileFailed: Any other combination of failures.
        """
        to_submit = pending_ids(entry_ids, marked_read)
        if not to_submit:
            logger.info("[MARK-READ] Nothing to mark as read")
            return MarkReadResult(count=0, submitted_ids=[])

        attempts: list[Attempt] = []
        for candidate in self.candidates:
            attempt = self._attempt(candidate, to_submit)
            attempts.append(attempt)
            if attempt.error is None and attempt.status is not None and 200 <= attempt.status < 300:
                marked_read.update(to_submit)
                if self.cache is not None:
                    self.cache.clear()
                logger.info(f"[MARK-READ] ✓ Marked {len(to_submit)} article(s) read via {candidate.url}")
                return MarkReadResult(count=len(to_submit), submitted_ids=to_submit, endpoint=candidate.url)

        if all(a.status == 404 for a in attempts):
            logger.warning("[MARK-READ] ✗ No mark-as-read endpoint found (all candidates returned 404)")
            raise EndpointUnavailable(attempts)

        logger.error(f"[MARK-READ] ✗ All {len(attempts)} endpoint(s) failed")
        raise ReconcileFailed(attempts)

    def _attempt(self, candidate: EndpointCandidate, entry_ids: list[str]) -> Attempt:
        if candidate.method != "POST":
            raise ValueError(f"Unsupported method for {candidate.url}: {candidate.method}")
        try:
            response = self.client.post(candidate.url, candidate.build_body(entry_ids))
        except requests.RequestException as e:
            logger.debug(f"[MARK-READ] {candidate.url} raised {e}")
            return Attempt(endpoint=candidate.url, status=None, error=str(e))

        logger.debug(f"[MARK-READ] {candidate.url} -> {response.status}")
        return Attempt(endpoint=candidate.url, status=response.status)
