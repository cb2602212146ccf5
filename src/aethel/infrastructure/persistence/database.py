"""
SQLite database for Aethel projects and user preferences.

Projects are stored as JSON snapshot rows; preferences as JSON values keyed
by namespace. Use ":memory:" for throwaway databases (tests).
"""
import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

from aethel.utils.message import Log

MEMORY_PATH = ":memory:"


class Database:

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            from aethel.utils.paths import get_user_data_dir
            db_path = str(get_user_data_dir() / "aethel.db")

        self.db_path = db_path
        if db_path != MEMORY_PATH:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = sqlite3.connect(db_path)
        self._connection.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    schema_version TEXT NOT NULL,
                    saved_at TEXT NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (self.CURRENT_SCHEMA_VERSION,))
        Log.debug(f"Database: ready at {self.db_path}")

    def get_connection(self) -> sqlite3.Connection:
        return self._connection

    def transaction(self) -> "TransactionContext":
        return TransactionContext(self._connection)

    def get_schema_version(self) -> int:
        row = self._connection.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
        return row[0] if row else 1

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None
            Log.info(f"Database connection closed: {self.db_path}")

    @staticmethod
    def json_encode(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def json_decode(value: Optional[str], default: Any = None) -> Any:
        if value is None:
            return default
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return default


class TransactionContext:
    """Commits on success, rolls back on error."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def __enter__(self) -> sqlite3.Connection:
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.conn.commit()
        else:
            self.conn.rollback()
        return False
