"""
Tests for the SQLite database, preferences and project repositories.
"""
import pytest

from aethel.domain.errors import NotFoundError, QuotaExceededError
from aethel.infrastructure.persistence.database import Database
from aethel.infrastructure.persistence.preferences_repository import PreferencesRepository
from aethel.infrastructure.persistence.project_repository import ProjectRepository
from aethel.infrastructure.persistence.snapshot_serializer import SnapshotSerializer


@pytest.fixture
def database():
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def snapshot(document, ops):
    ops.create_object_with_placement("Frodo", "character", position=1.0)
    return document.snapshot()


def _size(snapshot):
    return len(SnapshotSerializer.to_json(snapshot).encode("utf-8"))


# =============================================================================
# Database
# =============================================================================

class TestDatabase:

    def test_schema_version(self, database):
        assert database.get_schema_version() == Database.CURRENT_SCHEMA_VERSION

    def test_file_database_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "aethel.db"
        db = Database(str(path))
        assert path.exists()
        db.close()

    def test_transaction_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            with database.transaction() as conn:
                conn.execute("INSERT INTO preferences (key, value) VALUES ('k', '1')")
                raise RuntimeError("abort")
        assert PreferencesRepository(database).get("k") is None

    def test_json_decode_falls_back(self):
        assert Database.json_decode("{broken", default={}) == {}
        assert Database.json_decode(None, default=3) == 3


# =============================================================================
# Preferences
# =============================================================================

class TestPreferencesRepository:

    def test_set_get_replace(self, database):
        repo = PreferencesRepository(database)
        repo.set("recent", ["a"])
        repo.set("recent", ["a", "b"])
        assert repo.get("recent") == ["a", "b"]
        assert repo.get("missing", default="x") == "x"

    def test_get_all_delete_clear(self, database):
        repo = PreferencesRepository(database)
        repo.set("one", 1)
        repo.set("two", {"nested": True})
        assert repo.get_all() == {"one": 1, "two": {"nested": True}}

        repo.delete("one")
        assert repo.get("one") is None
        repo.clear()
        assert repo.get_all() == {}


# =============================================================================
# Projects
# =============================================================================

class TestProjectRepository:

    def test_save_and_load(self, database, snapshot):
        repo = ProjectRepository(database)
        summary = repo.save("p1", "Fellowship", snapshot)
        assert summary.size_bytes == _size(snapshot)
        assert summary.schema_version == snapshot["schema_version"]
        assert repo.load("p1") == snapshot
        assert repo.exists("p1")

    def test_list_and_delete(self, database, snapshot):
        repo = ProjectRepository(database)
        repo.save("p1", "Fellowship", snapshot)
        repo.save("p2", "Two Towers", snapshot)
        assert sorted(p.name for p in repo.list()) == ["Fellowship", "Two Towers"]

        repo.delete("p1")
        assert not repo.exists("p1")
        with pytest.raises(NotFoundError):
            repo.delete("p1")

    def test_load_missing(self, database):
        with pytest.raises(NotFoundError):
            ProjectRepository(database).load("nope")

    def test_quota_exceeded_writes_nothing(self, database, snapshot):
        repo = ProjectRepository(database, quota_bytes=_size(snapshot) + 10)
        repo.save("p1", "Fellowship", snapshot)

        with pytest.raises(QuotaExceededError) as info:
            repo.save("p2", "Two Towers", snapshot)
        assert info.value.required_bytes == _size(snapshot)
        assert not repo.exists("p2")

    def test_resave_does_not_count_own_previous_size(self, database, snapshot):
        """Test that overwriting a project only needs room for the new copy."""
        repo = ProjectRepository(database, quota_bytes=_size(snapshot))
        repo.save("p1", "Fellowship", snapshot)
        repo.save("p1", "Fellowship (revised)", snapshot)
        assert [p.name for p in repo.list()] == ["Fellowship (revised)"]

    def test_unlimited_quota(self, database, snapshot):
        repo = ProjectRepository(database, quota_bytes=None)
        for i in range(3):
            repo.save(f"p{i}", f"Book {i}", snapshot)
        assert len(repo.list()) == 3
