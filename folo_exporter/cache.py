"""Cache layer for the last successful fetch, plus the persisted marked-read set."""
import logging
import time
from typing import Iterable, Iterator

from .database import Database
from .models import Article, CachedSnapshot

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "unread"


class SnapshotCache:
    """Single-entry snapshot store.

    ``save`` overwrites unconditionally and ``load`` returns None when nothing
    is stored. Staleness is computed from ``fetch_time`` on read.
    """

    def __init__(self, db: Database, key: str = DEFAULT_CACHE_KEY):
        self.db = db
        self.key = key

    def save(self, articles: list[Article], fetch_time: int | None = None, truncated: bool = False) -> CachedSnapshot:
        fetch_time = int(time.time() * 1000) if fetch_time is None else fetch_time
        self.db.save_snapshot(self.key, [a.to_dict() for a in articles], fetch_time, truncated)
        logger.debug(f"[CACHE] Saved {len(articles)} articles")
        return CachedSnapshot(articles=list(articles), fetch_time=fetch_time, count=len(articles), truncated=truncated)

    def load(self) -> CachedSnapshot | None:
        stored = self.db.load_snapshot(self.key)
        if stored is None:
            return None
        return CachedSnapshot(
            articles=[Article.from_dict(item) for item in stored['articles']],
            fetch_time=stored['fetch_time'],
            count=stored['count'],
            truncated=stored['truncated'],
        )

    def clear(self) -> None:
        self.db.delete_snapshot(self.key)
        logger.debug("[CACHE] Cleared snapshot")


class MarkedReadStore:
    """Append-only set of acknowledged ids, persisted between CLI invocations.

    Behaves like a ``set`` for membership and ``update`` so the reconciler can
    use either.
    """

    def __init__(self, db: Database):
        self.db = db

    def __contains__(self, entry_id: object) -> bool:
        return isinstance(entry_id, str) and self.db.is_marked_read(entry_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self.db.get_marked_read_ids())

    def __len__(self) -> int:
        return len(self.db.get_marked_read_ids())

    def update(self, entry_ids: Iterable[str]) -> None:
        self.db.add_marked_read(list(entry_ids))

    def clear(self) -> None:
        self.db.clear_marked_read()
