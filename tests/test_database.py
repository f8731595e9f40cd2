"""Tests for database module."""
import tempfile
from pathlib import Path


def test_database_creates_tables():
    """Database should create all required tables on init."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "data" / "test.db")

        tables = db.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        table_names = {row[0] for row in tables}

        assert "cache_snapshot" in table_names
        assert "marked_read" in table_names
        assert "fetch_runs" in table_names


def test_snapshot_save_load_and_overwrite():
    """save_snapshot replaces the previous value under the same key."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")

        assert db.load_snapshot("unread") is None

        db.save_snapshot("unread", [{"id": "1", "title": "标题"}], 1000)
        db.save_snapshot("unread", [{"id": "2"}, {"id": "3"}], 2000)

        stored = db.load_snapshot("unread")
        assert stored == {"articles": [{"id": "2"}, {"id": "3"}], "fetch_time": 2000, "count": 2, "truncated": False}


def test_delete_snapshot():
    """delete_snapshot empties the key."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")
        db.save_snapshot("unread", [], 1000)

        db.delete_snapshot("unread")

        assert db.load_snapshot("unread") is None


def test_marked_read_ids():
    """add_marked_read is idempotent and keeps insertion order."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")

        assert db.is_marked_read("a") is False

        db.add_marked_read(["a", "b"])
        db.add_marked_read(["b", "c"])

        assert db.is_marked_read("a") is True
        assert db.get_marked_read_ids() == ["a", "b", "c"]

        db.clear_marked_read()
        assert db.get_marked_read_ids() == []


def test_record_run_start_and_complete():
    """Fetch run should be trackable from start to completion."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")

        run_id = db.record_run_start()
        assert run_id == 1

        db.record_run_complete(run_id, items_fetched=120, requests_made=2, truncated=False, stop_reason="short_page")

        last_run = db.get_last_run()
        assert last_run["status"] == "completed"
        assert last_run["items_fetched"] == 120
        assert last_run["requests_made"] == 2
        assert last_run["truncated"] is False
        assert last_run["stop_reason"] == "short_page"


def test_record_run_failed():
    """Failed runs keep their error message."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")

        run_id = db.record_run_start()
        db.record_run_failed(run_id, "Fetch failed with status 500")

        last_run = db.get_last_run()
        assert last_run["status"] == "failed"
        assert last_run["error"] == "Fetch failed with status 500"


def test_stale_running_runs_are_closed():
    """Starting a run marks leftovers from interrupted runs as failed."""
    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")

        stale_id = db.record_run_start()
        db.record_run_start()

        row = db.execute("SELECT status, error FROM fetch_runs WHERE id = ?", (stale_id,)).fetchone()
        assert row["status"] == "failed"
        assert row["error"] == "interrupted"


def test_format_timestamp():
    """SQLite timestamps render in local time; missing ones as N/A."""
    from folo_exporter.database import format_timestamp

    assert format_timestamp(None) == "N/A"
    assert len(format_timestamp("2026-01-01 00:00:00")) == len("2026-01-01 00:00:00")


def test_snapshot_table_gains_truncated_column():
    """An older snapshot table without the truncated column is upgraded."""
    import sqlite3

    from folo_exporter.database import Database

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        conn = sqlite3.connect(db_path)
        conn.execute(
            """CREATE TABLE cache_snapshot (
                   key TEXT PRIMARY KEY,
                   articles TEXT NOT NULL,
                   fetch_time INTEGER NOT NULL,
                   count INTEGER NOT NULL
               )"""
        )
        conn.execute("INSERT INTO cache_snapshot VALUES ('unread', '[]', 1000, 0)")
        conn.commit()
        conn.close()

        db = Database(db_path)

        assert db.load_snapshot("unread")["truncated"] is False
        db.save_snapshot("unread", [], 2000, truncated=True)
        assert db.load_snapshot("unread")["truncated"] is True
