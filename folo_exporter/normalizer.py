"""Map raw ``/entries`` records to flat Article values."""
from .models import Article


def _section(raw, key: str) -> dict:
    value = raw.get(key) if isinstance(raw, dict) else None
    return value if isinstance(value, dict) else {}


def _text(value, default: str) -> str:
    if isinstance(value, str) and value:
        return value
    return default


def _optional_text(value) -> str | None:
    return value if isinstance(value, str) and value else None


def _identifier(value) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    return value if isinstance(value, str) and value else None


def normalize_entry(raw) -> Article:
    """Flatten ``{entries: {...}, feeds: {...}, subscriptions: {...}}``.

    Never raises: missing or malformed nested objects fall back to defaults.
    """
    entry = _section(raw, "entries")
    feed = _section(raw, "feeds")
    subscription = _section(raw, "subscriptions")

    return Article(
        id=_identifier(entry.get("id")),
        title=_text(entry.get("title"), "Untitled"),
        url=_text(entry.get("url"), ""),
        published_at=_optional_text(entry.get("publishedAt")),
        inserted_at=_optional_text(entry.get("insertedAt")),
        summary=_text(entry.get("summary"), ""),
        feed_title=_text(feed.get("title"), "Unknown"),
        category=_text(subscription.get("category"), "Uncategorized"),
    )
