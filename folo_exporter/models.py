"""Data models for the unread-article exporter."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass
class Article:
    """Normalized unread entry.

    ``id`` is ``None`` when the upstream record had no usable identifier; such
    articles are exported but never deduplicated or marked read.
    """

    id: str | None
    title: str = "Untitled"
    url: str = ""
    published_at: str | None = None
    inserted_at: str | None = None
    summary: str = ""
    feed_title: str = "Unknown"
    category: str = "Uncategorized"

    def to_dict(self) -> dict:
        """Serialize using the field names shared by every export surface."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "publishedAt": self.published_at,
            "insertedAt": self.inserted_at,
            "summary": self.summary,
            "feedTitle": self.feed_title,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Article":
        return cls(
            id=data.get("id"),
            title=data.get("title", "Untitled"),
            url=data.get("url", ""),
            published_at=data.get("publishedAt"),
            inserted_at=data.get("insertedAt"),
            summary=data.get("summary", ""),
            feed_title=data.get("feedTitle", "Unknown"),
            category=data.get("category", "Uncategorized"),
        )


@dataclass
class FetchResult:
    """Outcome of one pagination run."""

    articles: list[Article]
    request_count: int
    stop_reason: str  # empty_page, stalled, short_page, max_requests
    truncated: bool = False


@dataclass
class MarkReadResult:
    """Outcome of a successful mark-as-read reconciliation.

    ``count`` is 0 when every id had already been acknowledged.
    """

    count: int
    submitted_ids: list[str] = field(default_factory=list)
    endpoint: str | None = None


@dataclass
class CachedSnapshot:
    """Last successful fetch result as persisted by the cache layer."""

    articles: list[Article]
    fetch_time: int  # epoch millis
    count: int
    truncated: bool = False

    @property
    def fetched_at(self) -> datetime:
        return datetime.fromtimestamp(self.fetch_time / 1000, tz=timezone.utc)

    def age(self, now: datetime | None = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - self.fetched_at

    def is_stale(self, stale_minutes: int = 30, now: datetime | None = None) -> bool:
        """Display hint only; a stale snapshot is never invalidated automatically."""
        return self.age(now) > timedelta(minutes=stale_minutes)
