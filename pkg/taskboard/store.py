"""
Record storage backends.

A store keeps JSON documents in named collections ("projects",
"activities") and offers reads plus an all-or-nothing batch replace. It knows
nothing about versions or invariants; the VersionGuard layers those on top.
"""
import copy
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)

PROJECTS = "projects"
ACTIVITIES = "activities"


@dataclass
class Write:
    """One entry of a batch: a full replacement body, or None to delete."""
    collection: str
    record_id: str
    body: Optional[Dict[str, Any]]

    @property
    def is_delete(self) -> bool:
        return self.body is None


def _partition(body: Dict[str, Any]) -> str:
    return str(body.get("projectId") or "")


class MemoryStore:
    """In-process store. Used when no database path is configured."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            body = self._data.get(collection, {}).get(record_id)
            return copy.deepcopy(body) if body is not None else None

    def scan(self, collection: str, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = list(self._data.get(collection, {}).values())
        if project_id is not None:
            rows = [r for r in rows if _partition(r) == project_id]
        return [copy.deepcopy(r) for r in rows]

    def replace(self, writes: List[Write]) -> None:
        with self._lock:
            for w in writes:
                bucket = self._data.setdefault(w.collection, {})
                if w.is_delete:
                    bucket.pop(w.record_id, None)
                else:
                    bucket[w.record_id] = copy.deepcopy(w.body)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteStore:
    """SQLite-backed store: one row per record, body kept as JSON."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "board.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        logger.debug("Initialising board schema at %s", self.db_path)
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    collection TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    project_id TEXT NOT NULL DEFAULT '',
                    body TEXT NOT NULL,
                    PRIMARY KEY (collection, record_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_records_project ON records(collection, project_id)"
            )
            conn.commit()

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT body FROM records WHERE collection = ? AND record_id = ?",
                (collection, record_id),
            ).fetchone()
        return json.loads(row["body"]) if row else None

    def scan(self, collection: str, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with _connect(self.db_path) as conn:
            if project_id is None:
                rows = conn.execute(
                    "SELECT body FROM records WHERE collection = ? ORDER BY rowid",
                    (collection,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT body FROM records WHERE collection = ? AND project_id = ? ORDER BY rowid",
                    (collection, project_id),
                ).fetchall()
        return [json.loads(r["body"]) for r in rows]

    def replace(self, writes: List[Write]) -> None:
        """Apply the whole batch in one transaction."""
        conn = _connect(self.db_path)
        try:
            with conn:
                for w in writes:
                    if w.is_delete:
                        conn.execute(
                            "DELETE FROM records WHERE collection = ? AND record_id = ?",
                            (w.collection, w.record_id),
                        )
                    else:
                        conn.execute(
                            """
                            INSERT OR REPLACE INTO records (collection, record_id, project_id, body)
                            VALUES (?, ?, ?, ?)
                            """,
                            (w.collection, w.record_id, _partition(w.body), json.dumps(w.body)),
                        )
        finally:
            conn.close()


def open_store(db_path: str = ""):
    """SQLite store for a path, in-memory store for an empty path."""
    if db_path:
        return SqliteStore(db_path)
    return MemoryStore()
