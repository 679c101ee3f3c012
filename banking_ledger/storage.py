"""
Storage Backend Module

Provides an abstract document-store interface with in-memory (testing) and
SQLite (durable) implementations. Records are JSON documents keyed by id;
monetary values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set, Union
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
import json
import threading


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record, or None if absent"""

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records of a table in insertion order"""

    @abstractmethod
    def find_any(self, table: str, keys: Iterable[str], value: Any) -> List[Dict[str, Any]]:
        """Find records where at least one of ``keys`` equals ``value``"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Remove every record of a table"""

    @abstractmethod
    def close(self) -> None:
        """Release the backend"""

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching every filter"""
        return [
            record for record in self.load_all(table)
            if all(record.get(key) == value for key, value in filters.items())
        ]


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._closed = False

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        if self._closed:
            raise RuntimeError("storage is closed")
        return self._data.setdefault(table, {})

    @staticmethod
    def _copy(record: Dict[str, Any]) -> Dict[str, Any]:
        # Round-trip through JSON so callers never share state with the store
        return json.loads(json.dumps(record, default=str))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._table(table)[record_id] = self._copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return self._copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [self._copy(record) for record in self._table(table).values()]

    def find_any(self, table: str, keys: Iterable[str], value: Any) -> List[Dict[str, Any]]:
        keys = list(keys)
        with self._lock:
            return [
                self._copy(record) for record in self._table(table).values()
                if any(record.get(key) == value for key in keys)
            ]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._table(table).clear()

    def close(self) -> None:
        with self._lock:
            self._closed = True


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection: Optional[sqlite3.Connection] = sqlite3.connect(
            self.db_path, check_same_thread=False
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._tables: Set[str] = set()

        # WAL mode for concurrent readers alongside the writer thread
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _conn(self) -> sqlite3.Connection:
        if self._connection is None:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return self._connection

    def _ensure_table(self, table: str) -> None:
        """Create the document table on first use"""
        if table in self._tables:
            return
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table}")

        conn = self._conn()
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
        self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            conn = self._conn()
            conn.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))
            conn.commit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._conn().execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            rows = self._conn().execute(
                f"SELECT data FROM {table} ORDER BY seq"
            ).fetchall()
            return [json.loads(row['data']) for row in rows]

    def find_any(self, table: str, keys: Iterable[str], value: Any) -> List[Dict[str, Any]]:
        keys = list(keys)
        if not keys:
            return []
        conditions = " OR ".join("json_extract(data, ?) = ?" for _ in keys)
        params: List[Any] = []
        for key in keys:
            params.extend([f"$.{key}", value])

        with self._lock:
            self._ensure_table(table)
            rows = self._conn().execute(
                f"SELECT data FROM {table} WHERE {conditions} ORDER BY seq", params
            ).fetchall()
            return [json.loads(row['data']) for row in rows]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            row = self._conn().execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            ).fetchone()
            return row is not None

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            row = self._conn().execute(f"SELECT COUNT(*) AS count FROM {table}").fetchone()
            return row['count']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            conn = self._conn()
            conn.execute(f"DELETE FROM {table}")
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> Optional[StorageInterface]:
    """
    Build a storage backend from a URL

    Supported forms: ``sqlite:///relative/path.db``, ``sqlite:////abs/path.db``,
    ``sqlite://`` (in-memory SQLite) and ``memory://``. An empty URL disables
    persistence and returns None.
    """
    url = (database_url or "").strip()
    if not url:
        return None
    if url == "memory://":
        return InMemoryStorage()
    if url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
