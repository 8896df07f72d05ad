"""
SQLite key-value persistence for Low Music.

Every table (library, playlists, stats, ...) is stored as one JSON blob
under its key and replaced wholesale on each save.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from loguru import logger

from low_music.exceptions import PersistenceError

from .config import get_data_dir

# Database schema version for migrations
SCHEMA_VERSION = 1


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    return get_data_dir() / "low_music.db"


class KeyValueStore:
    """Whole-value key-value persistence backed by a single SQLite table.

    `save` replaces the entire value for a key inside one transaction, so a
    reader sees either the old value or the new one. Writes are serialised
    by a lock; the store does not merge concurrent edits.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else get_database_path()
        self._write_lock = threading.Lock()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row

        # WAL mode lets reads proceed while a save is in progress
        conn.execute("PRAGMA journal_mode=WAL")

        try:
            yield conn
        finally:
            conn.close()

    def init_database(self) -> None:
        """Create the schema if needed and run pending migrations."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor = conn.execute("SELECT MAX(version) AS version FROM schema_version")
            row = cursor.fetchone()
            current_version = row["version"] if row and row["version"] else 0

            if current_version < SCHEMA_VERSION:
                self._migrate(conn, current_version)

    def _migrate(self, conn: sqlite3.Connection, current_version: int) -> None:
        """Migrate database from current_version to latest schema."""
        if current_version < 1:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL, -- JSON document
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
        logger.info(f"Database migrated from v{current_version} to v{SCHEMA_VERSION}")

    def load(self, table: str, default: Any = None) -> Any:
        """Return the stored value for `table`, or `default` if absent.

        A value that cannot be decoded is logged and treated as absent.
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (table,)
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read '{table}' from {self.db_path}: {e}")
            return default

        if row is None:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.exception(f"Corrupt value stored for '{table}', using default")
            return default

    def save(self, table: str, value: Any) -> None:
        """Replace the stored value for `table` atomically.

        Raises:
            PersistenceError: If the value cannot be serialised or written
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(table, f"Cannot serialise '{table}': {e}") from e

        with self._write_lock:
            try:
                with self.connection() as conn:
                    with conn:  # commits on success, rolls back on error
                        conn.execute(
                            """
                            INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                            VALUES (?, ?, CURRENT_TIMESTAMP)
                        """,
                            (table, payload),
                        )
            except sqlite3.Error as e:
                raise PersistenceError(table, f"Cannot save '{table}': {e}") from e

        logger.debug(f"Saved '{table}' ({len(payload)} bytes)")
