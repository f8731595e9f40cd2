"""SQLite store for the cached snapshot, marked-read ids and fetch history."""
import json
import sqlite3
import threading
from pathlib import Path
from datetime import datetime, timezone


def format_timestamp(utc_str: str | None) -> str:
    """Convert a SQLite UTC timestamp string to local time for display.

    Returns:
        Formatted string in local time: 'YYYY-MM-DD HH:MM:SS'
    """
    if not utc_str:
        return 'N/A'

    # SQLite CURRENT_TIMESTAMP returns UTC without an offset
    utc_dt = datetime.fromisoformat(utc_str.replace(' ', 'T')).replace(tzinfo=timezone.utc)
    return utc_dt.astimezone().strftime('%Y-%m-%d %H:%M:%S')


class Database:
    """SQLite database wrapper.

    A single lock serializes every statement, so one instance may be shared
    between threads. It does not order whole fetch/mark-read operations.
    """

    SCHEMA = """
    -- Last successful fetch, one row per cache key
    CREATE TABLE IF NOT EXISTS cache_snapshot (
        key TEXT PRIMARY KEY,
        articles TEXT NOT NULL,
        fetch_time INTEGER NOT NULL,
        count INTEGER NOT NULL,
        truncated BOOLEAN DEFAULT 0
    );

    -- Ids already acknowledged by the server since the last fresh fetch
    CREATE TABLE IF NOT EXISTS marked_read (
        entry_id TEXT PRIMARY KEY,
        marked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Fetch run history
    CREATE TABLE IF NOT EXISTS fetch_runs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        completed_at TIMESTAMP,
        items_fetched INTEGER DEFAULT 0,
        requests_made INTEGER DEFAULT 0,
        truncated BOOLEAN DEFAULT 0,
        stop_reason TEXT,
        status TEXT CHECK (status IN ('running', 'completed', 'failed')),
        error TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_fetch_runs_status ON fetch_runs(status);
    """

    def __init__(self, db_path: Path):
        """Initialize database, creating tables if needed."""
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self.conn.executescript(self.SCHEMA)
            columns = {row["name"] for row in self.conn.execute("PRAGMA table_info(cache_snapshot)")}
            # Databases created before the truncated flag was stored
            if "truncated" not in columns:
                self.conn.execute("ALTER TABLE cache_snapshot ADD COLUMN truncated BOOLEAN DEFAULT 0")
            self.conn.commit()

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL and return cursor."""
        with self._lock:
            return self.conn.execute(sql, params)

    def commit(self) -> None:
        with self._lock:
            self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # === Snapshot ===

    def save_snapshot(self, key: str, articles: list[dict], fetch_time: int, truncated: bool = False) -> None:
        """Overwrite the snapshot stored under ``key``."""
        with self._lock:
            self.execute(
                """INSERT OR REPLACE INTO cache_snapshot (key, articles, fetch_time, count, truncated)
                   VALUES (?, ?, ?, ?, ?)""",
                (key, json.dumps(articles, ensure_ascii=False), fetch_time, len(articles), int(truncated)),
            )
            self.commit()

    def load_snapshot(self, key: str) -> dict | None:
        """Return ``{articles, fetch_time, count, truncated}`` or None when absent."""
        row = self.execute(
            "SELECT articles, fetch_time, count, truncated FROM cache_snapshot WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None
        return {
            'articles': json.loads(row['articles']),
            'fetch_time': row['fetch_time'],
            'count': row['count'],
            'truncated': bool(row['truncated']),
        }

    def delete_snapshot(self, key: str) -> None:
        with self._lock:
            self.execute("DELETE FROM cache_snapshot WHERE key = ?", (key,))
            self.commit()

    # === Marked-read ids ===

    def is_marked_read(self, entry_id: str) -> bool:
        cursor = self.execute("SELECT 1 FROM marked_read WHERE entry_id = ?", (entry_id,))
        return cursor.fetchone() is not None

    def add_marked_read(self, entry_ids: list[str]) -> None:
        """Record acknowledged ids. Already-present ids are ignored."""
        with self._lock:
            self.conn.executemany(
                "INSERT OR IGNORE INTO marked_read (entry_id) VALUES (?)",
                [(entry_id,) for entry_id in entry_ids],
            )
            self.commit()

    def get_marked_read_ids(self) -> list[str]:
        cursor = self.execute("SELECT entry_id FROM marked_read ORDER BY rowid")
        return [row['entry_id'] for row in cursor.fetchall()]

    def clear_marked_read(self) -> None:
        with self._lock:
            self.execute("DELETE FROM marked_read")
            self.commit()

    # === Fetch runs ===

    def record_run_start(self) -> int:
        """Start a new fetch run, return run_id.

        Also closes any stale 'running' runs from interrupted executions.
        """
        with self._lock:
            self.execute(
                """UPDATE fetch_runs
                   SET status = 'failed',
                       completed_at = CURRENT_TIMESTAMP,
                       error = 'interrupted'
                   WHERE status = 'running'"""
            )
            cursor = self.execute("INSERT INTO fetch_runs (status) VALUES (?)", ("running",))
            self.commit()
            return cursor.lastrowid

    def record_run_complete(
        self,
        run_id: int,
        items_fetched: int,
        requests_made: int,
        truncated: bool,
        stop_reason: str,
    ) -> None:
        with self._lock:
            self.execute(
                """UPDATE fetch_runs
                   SET completed_at = CURRENT_TIMESTAMP,
                       items_fetched = ?,
                       requests_made = ?,
                       truncated = ?,
                       stop_reason = ?,
                       status = 'completed'
                   WHERE id = ?""",
                (items_fetched, requests_made, int(truncated), stop_reason, run_id),
            )
            self.commit()

    def record_run_failed(self, run_id: int, error: str) -> None:
        with self._lock:
            self.execute(
                """UPDATE fetch_runs
                   SET completed_at = CURRENT_TIMESTAMP,
                       status = 'failed',
                       error = ?
                   WHERE id = ?""",
                (error, run_id),
            )
            self.commit()

    def get_last_run(self) -> dict | None:
        """Most recent fetch run as a dict, or None if there are no runs."""
        row = self.execute("SELECT * FROM fetch_runs ORDER BY id DESC LIMIT 1").fetchone()
        if not row:
            return None
        run = dict(row)
        run['truncated'] = bool(run['truncated'])
        return run

