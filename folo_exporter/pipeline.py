"""Fetch and mark-as-read orchestration around an explicit session object."""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .cache import MarkedReadStore, SnapshotCache
from .database import Database
from .fetcher import FetchCancelled, FetchFailed, EntriesClient, fetch_all_unread
from .models import Article, CachedSnapshot, FetchResult, MarkReadResult
from .reconciler import MarkReadReconciler

logger = logging.getLogger(__name__)


@dataclass
class ExportSession:
    """Articles on display plus the state that outlives one fetch.

    One session per credential. Sessions that share a database also share its
    snapshot and marked-read set, and concurrent use of them is undefined:
    serialize the calls or give each session its own database.
    """

    db: Database
    cache: SnapshotCache
    marked_read: MarkedReadStore
    articles: list[Article] = field(default_factory=list)
    truncated: bool = False
    fetched_at: datetime | None = None

    @classmethod
    def open(cls, db: Database) -> "ExportSession":
        return cls(db=db, cache=SnapshotCache(db), marked_read=MarkedReadStore(db))

    def reset(self) -> None:
        """Full cache reset: drop the snapshot and the marked-read set."""
        self.cache.clear()
        self.marked_read.clear()
        self.articles = []
        self.truncated = False
        self.fetched_at = None


def fetch_unread(
    session: ExportSession,
    client: EntriesClient,
    batch_size: int = 100,
    max_requests: int = 50,
    cursor_field: str = "publishedAfter",
    cancel: threading.Event | None = None,
    on_page: Callable[[int, int], None] | None = None,
) -> FetchResult:
    """Run a fresh pagination and make it the session's current result.

    On success the snapshot is overwritten and the marked-read set cleared.
    On failure nothing changes: the session keeps its previous articles and
    the cache keeps the previous snapshot.
    """
    run_id = session.db.record_run_start()
    try:
        result = fetch_all_unread(
            client,
            batch_size=batch_size,
            max_requests=max_requests,
            cursor_field=cursor_field,
            cancel=cancel,
            on_page=on_page,
        )
    except (FetchFailed, FetchCancelled) as e:
        session.db.record_run_failed(run_id, str(e))
        logger.error(f"[FETCH] ✗ {e}")
        raise

    snapshot = session.cache.save(result.articles, truncated=result.truncated)
    session.marked_read.clear()
    session.articles = result.articles
    session.truncated = result.truncated
    session.fetched_at = snapshot.fetched_at

    session.db.record_run_complete(
        run_id,
        items_fetched=len(result.articles),
        requests_made=result.request_count,
        truncated=result.truncated,
        stop_reason=result.stop_reason,
    )
    return result


def restore_from_cache(session: ExportSession) -> CachedSnapshot | None:
    """Load the last good snapshot into the session for redisplay."""
    snapshot = session.cache.load()
    if snapshot is None:
        return None
    session.articles = snapshot.articles
    session.truncated = snapshot.truncated
    session.fetched_at = snapshot.fetched_at
    return snapshot


def mark_session_read(session: ExportSession, reconciler: MarkReadReconciler) -> MarkReadResult:
    """Mark the session's articles read.

    Errors from the reconciler propagate unchanged and never touch
    ``session.articles``, so an export already produced stays valid.
    """
    return reconciler.reconcile([a.id for a in session.articles], session.marked_read)


def describe_age(snapshot: CachedSnapshot, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int(snapshot.age(now).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours, minutes = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {minutes}m ago"
    return f"{hours // 24}d ago"
