"""Cursor-based pagination over unread entries.

The upstream pagination contract is not reliable: the cursor parameter has
differed between deployments and may be silently ignored. A run therefore
ends on whichever comes first:

- an empty page
- a page that adds no new identified article (stall)
- a page shorter than the requested limit
- the request ceiling (result flagged as truncated)

One request is in flight at a time. Callers must not run two fetches
concurrently against the same ExportSession.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Protocol

import requests

from .api_client import ApiResponse, InvalidResponse
from .config import API_MAX_LIMIT, CURSOR_FIELDS
from .models import Article, FetchResult
from .normalizer import normalize_entry
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 50

# Raw entry field that feeds each cursor parameter
CURSOR_SOURCES = {
    "publishedAfter": "publishedAt",
    "publishedBefore": "publishedAt",
    "insertedBefore": "insertedAt",
}

STOP_EMPTY_PAGE = "empty_page"
STOP_STALLED = "stalled"
STOP_SHORT_PAGE = "short_page"
STOP_MAX_REQUESTS = "max_requests"


class EntriesClient(Protocol):
    def post_entries(self, body: dict) -> ApiResponse: ...


class FetchFailed(Exception):
    """A page request failed; the whole run is abandoned."""

    def __init__(self, status: int | None, reason: str | None = None):
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Fetch failed with status {status}"
        else:
            message = "Fetch failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FetchCancelled(Exception):
    """The caller cancelled the run; partial results are discarded."""


@dataclass
class FetchSession:
    """Ephemeral state of one pagination run. Never persisted."""

    page_limit: int
    cursor_field: str
    seen_ids: set[str] = field(default_factory=set)
    cursor: str | None = None
    request_count: int = 0
    articles: list[Article] = field(default_factory=list)

    def build_body(self) -> dict:
        body = {"limit": self.page_limit, "view": -1, "read": False}
        if self.cursor:
            body[self.cursor_field] = self.cursor
        return body

    def accumulate(self, entries: list) -> int:
        """Fold a page into the article list, returning new identified articles.

        Articles without an id are kept for display but never count as new,
        so a page made only of them is treated as a stall. After the first
        page they are kept only when the page also added an identified
        article, since a stalled page may be a repeat of an earlier one.
        """
        page_articles = []
        new_count = 0
        for raw in entries:
            article = normalize_entry(raw)
            if article.id is None:
                page_articles.append(article)
                continue
            if article.id in self.seen_ids:
                continue
            self.seen_ids.add(article.id)
            page_articles.append(article)
            new_count += 1
        if new_count or self.request_count <= 1:
            self.articles.extend(page_articles)
        return new_count

    def advance_cursor(self, entries: list) -> None:
        """Move the cursor to the last raw entry's timestamp, if usable."""
        last = entries[-1] if isinstance(entries[-1], dict) else {}
        entry = last.get("entries") if isinstance(last.get("entries"), dict) else {}
        value = entry.get(CURSOR_SOURCES[self.cursor_field])
        if parse_timestamp(value) is not None:
            self.cursor = value
        else:
            logger.debug(f"[FETCH] Last entry has no usable {CURSOR_SOURCES[self.cursor_field]}; cursor unchanged")


def _page_entries(result: ApiResponse) -> list:
    data = result.payload.get("data")
    return data if isinstance(data, list) else []


def fetch_all_unread(
    client: EntriesClient,
    batch_size: int = API_MAX_LIMIT,
    max_requests: int = DEFAULT_MAX_REQUESTS,
    cursor_field: str = "publishedAfter",
    cancel: threading.Event | None = None,
    on_page: Callable[[int, int], None] | None = None,
) -> FetchResult:
    """Page through every unread entry.

    Args:
        client: Object exposing ``post_entries(body) -> ApiResponse``
        batch_size: Requested page size, capped at the API maximum (100)
        max_requests: Safety ceiling on page requests
        cursor_field: ``publishedAfter``, ``publishedBefore`` or ``insertedBefore``
        cancel: Checked after each response; when set the run is abandoned
        on_page: Progress callback ``(request_count, total_articles)``

    Returns:
        FetchResult; ``truncated`` is set when the ceiling cut the run short.

    Raises:
        FetchFailed: Non-success status, network error or unparseable body.
        FetchCancelled: ``cancel`` was set.
    """
    if cursor_field not in CURSOR_FIELDS:
        raise ValueError(f"Unsupported cursor field: {cursor_field}")
    if batch_size <= 0 or max_requests <= 0:
        raise ValueError("batch_size and max_requests must be positive")

    state = FetchSession(page_limit=min(batch_size, API_MAX_LIMIT), cursor_field=cursor_field)

    while True:
        body = state.build_body()
        try:
            result = client.post_entries(body)
        except InvalidResponse as e:
            raise FetchFailed(e.status, "response body is not valid JSON") from e
        except requests.RequestException as e:
            raise FetchFailed(None, str(e)) from e

        if not result.ok:
            raise FetchFailed(result.status)

        if cancel is not None and cancel.is_set():
            logger.info(f"[FETCH] Cancelled after {state.request_count + 1} request(s)")
            raise FetchCancelled("Fetch cancelled")

        state.request_count += 1
        entries = _page_entries(result)
        if not entries:
            return _finish(state, STOP_EMPTY_PAGE)

        new_count = state.accumulate(entries)
        logger.debug(
            f"[FETCH] Page {state.request_count}: {len(entries)} entries, {new_count} new, "
            f"{len(state.articles)} total"
        )
        if on_page is not None:
            on_page(state.request_count, len(state.articles))

        if new_count == 0:
            return _finish(state, STOP_STALLED)

        state.advance_cursor(entries)

        if len(entries) < state.page_limit:
            return _finish(state, STOP_SHORT_PAGE)

        if state.request_count >= max_requests:
            logger.warning(
                f"[FETCH] Stopped at the {max_requests}-request safety limit; results may be incomplete"
            )
            return _finish(state, STOP_MAX_REQUESTS, truncated=True)


def _finish(state: FetchSession, reason: str, truncated: bool = False) -> FetchResult:
    logger.info(
        f"[FETCH] Done ({reason}): {len(state.articles)} articles in {state.request_count} request(s)"
    )
    return FetchResult(
        articles=state.articles,
        request_count=state.request_count,
        stop_reason=reason,
        truncated=truncated,
    )
