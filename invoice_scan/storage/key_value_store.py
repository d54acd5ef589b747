"""
Key-Value Store Module.

This module provides the storage medium that sealed records and the
audit log are persisted in. Values are JSON documents addressed by a
string key; the store itself is not transactional.

Backends:
    - InMemoryKeyValueStore: process-local, used by tests and one-off runs
    - SqliteKeyValueStore: a single SQLite table, one row per key
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, List, Optional, Union

from config import get_config
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.helpers import ensure_directory
from invoice_scan.utils.exceptions import StorageError

# Initialize module logger
logger = get_logger(__name__)


class KeyValueStore:
    """
    Interface for JSON key-value storage.

    ``get`` returns a fresh copy of the stored value, so callers may
    mutate what they read without affecting the store.
    """

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    @staticmethod
    def _encode(key: str, value: Any) -> str:
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError("serialize", f"{key}: {e}")

    @staticmethod
    def _decode(key: str, payload: str) -> Any:
        try:
            return json.loads(payload)
        except ValueError as e:
            raise StorageError("deserialize", f"{key}: {e}")


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store holding serialized copies of each value."""

    def __init__(self) -> None:
        self._data = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return self._decode(key, self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = self._encode(key, value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        return sorted(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """
    SQLite-backed key-value store.

    Every operation opens its own connection, so an instance can be
    shared between threads. Concurrent writers to the same key follow
    last-write-wins.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the key-value table

    Example:
        >>> store = SqliteKeyValueStore("data/invoice_scan.db")
        >>> store.set("audit_logs", [])
        >>> store.get("audit_logs")
        []
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        table_name: Optional[str] = None
    ) -> None:
        """
        Initialize the store and create its table if needed.

        Args:
            db_path: Path to database file. If None, uses configuration.
            table_name: Table name. If None, uses configuration.

        Raises:
            StorageError: If the database cannot be created.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            data_dir = Path(get_config("paths.data_dir", "data"))
            db_name = get_config("storage.database_name", "invoice_scan.db")
            self.db_path = data_dir / db_name

        self.table_name = table_name or get_config("storage.table_name", "kv_store")

        ensure_directory(self.db_path.parent)
        self._create_table()

        logger.info(f"SqliteKeyValueStore initialized (db: {self.db_path})")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_table(self) -> None:
        create_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.table_name} (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """

        try:
            conn = self._connect()
            try:
                conn.execute(create_sql)
                conn.commit()
            finally:
                conn.close()
            logger.debug("Key-value table created/verified")
        except sqlite3.Error as e:
            raise StorageError("create table", str(e))

    def get(self, key: str, default: Any = None) -> Any:
        query = f"SELECT value FROM {self.table_name} WHERE key = ?"

        try:
            conn = self._connect()
            try:
                row = conn.execute(query, (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError("get", str(e))

        if row is None:
            return default
        return self._decode(key, row[0])

    def set(self, key: str, value: Any) -> None:
        payload = self._encode(key, value)
        upsert_sql = f"""
        INSERT INTO {self.table_name} (key, value, updated_at)
        VALUES (?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """

        try:
            conn = self._connect()
            try:
                conn.execute(upsert_sql, (key, payload))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError("set", str(e))

        logger.debug(f"Stored key: {key}")

    def delete(self, key: str) -> bool:
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    f"DELETE FROM {self.table_name} WHERE key = ?",
                    (key,)
                )
                deleted = cursor.rowcount > 0
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError("delete", str(e))

        if deleted:
            logger.debug(f"Deleted key: {key}")
        return deleted

    def keys(self) -> List[str]:
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    f"SELECT key FROM {self.table_name} ORDER BY key"
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError("keys", str(e))

        return [row[0] for row in rows]


def create_key_value_store(backend: Optional[str] = None) -> KeyValueStore:
    """
    Build the configured storage backend.

    Args:
        backend: "sqlite" or "memory". If None, uses configuration.

    Returns:
        KeyValueStore instance.
    """
    backend = backend or get_config("storage.backend", "sqlite")

    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend != "sqlite":
        logger.warning(f"Unknown storage backend '{backend}', using sqlite")

    return SqliteKeyValueStore()
