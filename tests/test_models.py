"""Tests for models and timestamp helpers."""
from datetime import datetime, timedelta, timezone

from folo_exporter.models import Article, CachedSnapshot
from folo_exporter.timestamps import (
    EARLIEST,
    format_timestamp,
    isoformat_utc,
    parse_timestamp,
    sort_key,
)


def test_parse_timestamp_variants():
    """Z suffix, offsets and naive values all parse to aware UTC-comparable datetimes."""
    expected = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert parse_timestamp("2026-01-01T00:00:00Z") == expected
    assert parse_timestamp("2026-01-01T00:00:00+00:00") == expected
    assert parse_timestamp("2026-01-01T00:00:00") == expected
    assert parse_timestamp("2026-01-01T02:00:00+02:00") == expected


def test_parse_timestamp_rejects_garbage():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(1700000000) is None


def test_sort_key_missing_is_earliest():
    assert sort_key(None) == EARLIEST
    assert sort_key("2026-01-01T00:00:00Z") > EARLIEST


def test_format_timestamp_unknown():
    assert format_timestamp("bad") == "Unknown"
    assert format_timestamp(None, unknown="-") == "-"
    assert format_timestamp("2026-01-01T00:00:00Z") != "Unknown"


def test_isoformat_utc():
    dt = datetime(2026, 1, 1, 8, 30, tzinfo=timezone(timedelta(hours=8)))

    assert isoformat_utc(dt) == "2026-01-01T00:30:00.000Z"


def test_article_dict_round_trip():
    article = Article(id="1", title="T", url="u", published_at="p", inserted_at="i", summary="s", feed_title="f", category="c")

    assert Article.from_dict(article.to_dict()) == article


def test_article_from_partial_dict():
    """Missing keys fall back to the display defaults."""
    article = Article.from_dict({"id": "1"})

    assert article.title == "Untitled"
    assert article.feed_title == "Unknown"
    assert article.category == "Uncategorized"


def test_snapshot_staleness():
    """Snapshots older than the threshold are stale."""
    fetched = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    snapshot = CachedSnapshot(articles=[], fetch_time=int(fetched.timestamp() * 1000), count=0)

    assert snapshot.fetched_at == fetched
    assert not snapshot.is_stale(30, now=fetched + timedelta(minutes=29))
    assert snapshot.is_stale(30, now=fetched + timedelta(minutes=31))
    assert snapshot.age(now=fetched + timedelta(hours=1)) == timedelta(hours=1)
