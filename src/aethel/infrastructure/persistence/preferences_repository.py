"""
Preferences repository

Application-wide user preferences (timeline settings, recent projects),
persisted in the SQLite preferences table as JSON values.
"""
from datetime import datetime
from typing import Any, Dict

from aethel.infrastructure.persistence.database import Database
from aethel.utils.message import Log


class PreferencesRepository:

    def __init__(self, database: Database):
        self.db = database

    def set(self, key: str, value: Any) -> None:
        """Store value (JSON-serializable) under key, replacing any previous value."""
        now = datetime.now().isoformat()
        with self.db.transaction() as conn:
            conn.execute("""
                INSERT INTO preferences (key, value, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, (key, Database.json_encode(value), now, now))
        Log.debug(f"Saved preference: {key}")

    def get(self, key: str, default: Any = None) -> Any:
        row = self.db.get_connection().execute(
            "SELECT value FROM preferences WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        return Database.json_decode(row["value"], default)

    def get_all(self) -> Dict[str, Any]:
        rows = self.db.get_connection().execute("SELECT key, value FROM preferences").fetchall()
        return {row["key"]: Database.json_decode(row["value"]) for row in rows}

    def delete(self, key: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        Log.debug(f"Deleted preference: {key}")

    def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM preferences")
        Log.warning("Cleared all preferences")
