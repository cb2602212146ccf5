"""
Integration tests for initialize_services and the ServiceContainer.

Covers the wiring between settings, document history and the project
repository, with both an in-memory and an on-disk database.
"""
import pytest

from aethel.application.bootstrap import initialize_services
from aethel.domain.errors import NotFoundError, QuotaExceededError


@pytest.fixture
def services():
    container = initialize_services(":memory:")
    yield container
    container.cleanup()


def _create(services, name, position):
    command = services.operations.create_object_with_placement(name, "character", position=position)
    assert command is not None
    return command


# =============================================================================
# Wiring
# =============================================================================

class TestWiring:

    def test_container_shares_one_settings_object(self, services):
        assert services.document.settings is services.settings_manager.timeline
        assert services.operations.document is services.document
        assert services.project_id is None

    def test_history_limit_follows_settings(self, services):
        """Test that lowering history_limit trims the live undo stack."""
        for index in range(3):
            _create(services, f"Hobbit {index}", float(index))
        assert services.document.history.undo_count() == 3

        assert services.settings_manager.set("history_limit", 2)
        assert services.document.history.undo_count() == 2

    def test_invalid_setting_leaves_document_alone(self, services):
        failures = []
        services.settings_manager.validation_failed.connect(lambda result: failures.append(result))
        assert services.settings_manager.set("history_limit", 0) is False
        assert services.document.settings.history_limit == 100
        assert len(failures) == 1

    def test_magnetic_settings_reach_the_store(self, services):
        services.settings_manager.set("magnetic_gap", 0.5)
        assert services.document.timeline.magnetic_gap == 0.5

    def test_reset_to_defaults_reapplies(self, services):
        services.settings_manager.set("history_limit", 5)
        services.settings_manager.reset_to_defaults()
        assert services.document.settings is services.settings_manager.timeline
        assert services.document.settings.history_limit == 100

    def test_settings_are_persisted(self, services):
        services.settings_manager.set("nudge_amount", 2.0)
        stored = services.preferences_repo.get("timeline.settings")
        assert stored["nudge_amount"] == 2.0


# =============================================================================
# Projects
# =============================================================================

class TestProjects:

    def test_save_marks_document_clean(self, services):
        _create(services, "Frodo", 1.0)
        assert services.document.is_dirty

        summary = services.save_project("p1", "Fellowship")
        assert summary.name == "Fellowship"
        assert not services.document.is_dirty
        assert (services.project_id, services.project_name) == ("p1", "Fellowship")

    def test_open_restores_saved_state(self, services):
        object_id = _create(services, "Frodo", 1.0).object_id
        services.save_project("p1", "Fellowship")

        services.operations.delete_object(object_id)
        assert object_id not in services.document.registry

        services.project_name = None
        services.open_project("p1")
        assert object_id in services.document.registry
        assert services.project_name == "Fellowship"
        assert not services.document.is_dirty
        assert services.document.history.undo_count() == 0

    def test_open_missing_project(self, services):
        with pytest.raises(NotFoundError):
            services.open_project("nope")

    def test_quota_blocks_save(self):
        services = initialize_services(":memory:", quota_bytes=10)
        try:
            _create(services, "Frodo", 1.0)
            with pytest.raises(QuotaExceededError) as excinfo:
                services.save_project("p1", "Fellowship")
            assert excinfo.value.quota_bytes == 10
            assert services.document.is_dirty
            assert not services.project_repo.exists("p1")
            assert services.project_id is None
        finally:
            services.cleanup()

    def test_file_database_survives_restart(self, tmp_path):
        db_path = str(tmp_path / "data" / "aethel.db")

        first = initialize_services(db_path)
        first.settings_manager.set("snap_enabled", False)
        _create(first, "Frodo", 1.0)
        first.save_project("p1", "Fellowship")
        first.cleanup()

        second = initialize_services(db_path)
        try:
            assert second.settings_manager.snap_enabled is False
            assert [p.id for p in second.project_repo.list()] == ["p1"]
            second.open_project("p1")
            assert len(second.document.registry) == 1
        finally:
            second.cleanup()

    def test_cleanup_closes_database(self, services):
        services.cleanup()
        assert services.database.get_connection() is None
