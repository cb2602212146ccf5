"""
Project repository

Saves document snapshots as JSON rows in the SQLite database.

Saving fails with QuotaExceededError when the encoded project would push the
total stored size past quota_bytes, or when SQLite reports a full disk.
"""
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from aethel.domain.errors import NotFoundError, QuotaExceededError
from aethel.infrastructure.persistence.database import Database
from aethel.infrastructure.persistence.snapshot_serializer import SnapshotSerializer
from aethel.utils.message import Log

DEFAULT_QUOTA_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True)
class ProjectSummary:
    id: str
    name: str
    schema_version: str
    saved_at: str
    size_bytes: int


class ProjectRepository:

    def __init__(self, database: Database, quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES):
        self.db = database
        self.quota_bytes = quota_bytes

    def save(self, project_id: str, name: str, snapshot: Dict[str, Any]) -> ProjectSummary:
        """
        Insert or replace a project snapshot.

        Raises:
            QuotaExceededError: quota or disk space exhausted; nothing is written
        """
        data = SnapshotSerializer.to_json(snapshot)
        size = len(data.encode("utf-8"))

        if self.quota_bytes is not None:
            used = self._used_bytes(excluding=project_id)
            if used + size > self.quota_bytes:
                raise QuotaExceededError(
                    f"Saving '{name}' needs {size} bytes, {max(0, self.quota_bytes - used)} available",
                    required_bytes=size,
                    quota_bytes=self.quota_bytes,
                )

        summary = ProjectSummary(
            id=project_id,
            name=name,
            schema_version=str(snapshot.get("schema_version", "")),
            saved_at=str(snapshot.get("saved_at", "")),
            size_bytes=size,
        )
        try:
            with self.db.transaction() as conn:
                conn.execute("""
                    INSERT INTO projects (id, name, schema_version, saved_at, size_bytes, data)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        schema_version = excluded.schema_version,
                        saved_at = excluded.saved_at,
                        size_bytes = excluded.size_bytes,
                        data = excluded.data
                """, (summary.id, summary.name, summary.schema_version, summary.saved_at, size, data))
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise QuotaExceededError(f"Disk full while saving '{name}': {e}", required_bytes=size)
            raise
        Log.info(f"ProjectRepository: saved '{name}' ({size} bytes)")
        return summary

    def load(self, project_id: str) -> Dict[str, Any]:
        """
        Raw snapshot of a stored project (pass it to Document.load).

        Raises:
            NotFoundError: no project with that id
        """
        row = self.db.get_connection().execute(
            "SELECT data FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("Project", project_id)
        return SnapshotSerializer.from_json(row["data"])

    def list(self) -> List[ProjectSummary]:
        rows = self.db.get_connection().execute(
            "SELECT id, name, schema_version, saved_at, size_bytes FROM projects ORDER BY saved_at DESC"
        ).fetchall()
        return [
            ProjectSummary(row["id"], row["name"], row["schema_version"], row["saved_at"], row["size_bytes"])
            for row in rows
        ]

    def exists(self, project_id: str) -> bool:
        return self.db.get_connection().execute(
            "SELECT 1 FROM projects WHERE id = ?", (project_id,)
        ).fetchone() is not None

    def delete(self, project_id: str) -> None:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        if cursor.rowcount == 0:
            raise NotFoundError("Project", project_id)
        Log.info(f"ProjectRepository: deleted project {project_id}")

    def _used_bytes(self, excluding: Optional[str] = None) -> int:
        row = self.db.get_connection().execute(
            "SELECT COALESCE(SUM(size_bytes), 0) AS used FROM projects WHERE id != ?",
            (excluding or "",),
        ).fetchone()
        return int(row["used"])
