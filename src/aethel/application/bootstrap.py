"""
Application Bootstrap

Builds the services of one editing session and wires them together:
database, repositories, timeline settings, document and operations.
"""
from typing import Optional

from aethel.application.document import Document
from aethel.application.operations.timeline_operations import TimelineOperations
from aethel.application.settings.timeline_settings import TimelineSettingsManager
from aethel.infrastructure.persistence.database import Database
from aethel.infrastructure.persistence.preferences_repository import PreferencesRepository
from aethel.infrastructure.persistence.project_repository import DEFAULT_QUOTA_BYTES, ProjectRepository
from aethel.utils.message import Log


class ServiceContainer:
    """Container for the services of one session"""

    def __init__(
        self,
        database: Database,
        preferences_repo: PreferencesRepository,
        project_repo: ProjectRepository,
        settings_manager: TimelineSettingsManager,
        document: Document,
        operations: TimelineOperations,
    ):
        self.database = database
        self.preferences_repo = preferences_repo
        self.project_repo = project_repo
        self.settings_manager = settings_manager
        self.document = document
        self.operations = operations
        self.project_id: Optional[str] = None
        self.project_name: Optional[str] = None

    def save_project(self, project_id: str, name: str):
        """Store the document under project_id; raises QuotaExceededError when out of space."""
        summary = self.project_repo.save(project_id, name, self.document.snapshot())
        self.project_id = project_id
        self.project_name = name
        self.document.mark_saved()
        return summary

    def open_project(self, project_id: str) -> None:
        """Load a stored project into the document (SnapshotError leaves it untouched)."""
        snapshot = self.project_repo.load(project_id)
        self.document.load(snapshot)
        summary = next((p for p in self.project_repo.list() if p.id == project_id), None)
        self.project_id = project_id
        self.project_name = summary.name if summary else None

    def cleanup(self) -> None:
        Log.info("ServiceContainer: Starting cleanup")
        if self.database:
            try:
                self.database.close()
            except Exception as e:
                Log.warning(f"ServiceContainer: Error closing database: {e}")
        Log.info("ServiceContainer: Cleanup complete")


def initialize_services(db_path: Optional[str] = None,
                        quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES) -> ServiceContainer:
    """
    Initialize the services of a session.

    Args:
        db_path: SQLite database file; None uses the platform data directory,
            ":memory:" keeps everything in memory
        quota_bytes: total size allowed for stored projects (None = unlimited)
    """
    database = Database(db_path)
    Log.info(f"Initializing services with database: {database.db_path}")

    preferences_repo = PreferencesRepository(database)
    project_repo = ProjectRepository(database, quota_bytes=quota_bytes)
    settings_manager = TimelineSettingsManager(preferences_repo)

    document = Document(settings_manager.timeline)
    settings_manager.settings_changed.connect(lambda _key: document.apply_settings(settings_manager.timeline))
    settings_manager.settings_loaded.connect(lambda: document.apply_settings(settings_manager.timeline))

    operations = TimelineOperations(document)
    Log.info("Services initialized")
    return ServiceContainer(database, preferences_repo, project_repo, settings_manager, document, operations)
