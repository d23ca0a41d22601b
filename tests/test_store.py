"""Tests for the JSON project library."""

import pytest

from agentforge.exceptions import AgentForgeError, ProjectNotFoundError
from agentforge.state import new_project
from agentforge.store import ProjectStore


@pytest.fixture
def store(tmp_path):
    return ProjectStore(tmp_path / "library")


class TestProjectStore:
    def test_save_and_load_roundtrip(self, store, clarified_project):
        store.save(clarified_project)
        loaded = store.load(clarified_project.id)
        assert loaded == clarified_project

    def test_save_leaves_no_temp_file(self, store, idle_project):
        path = store.save(idle_project)
        assert path.exists()
        assert list(store.projects_dir.glob("*.tmp")) == []

    def test_load_missing(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.load("deadbeef")

    def test_invalid_id_rejected(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.path_for("../etc/passwd")

    def test_corrupt_file(self, store, idle_project):
        path = store.save(idle_project)
        path.write_text("{not json")
        with pytest.raises(AgentForgeError):
            store.load(idle_project.id)

    def test_find_by_prefix(self, store, idle_project):
        store.save(idle_project)
        assert store.find(idle_project.id[:6]).id == idle_project.id

    def test_find_unknown_prefix(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.find("zzz")

    def test_find_ambiguous_prefix(self, store):
        a = new_project("first").model_copy(update={"id": "abc111"})
        b = new_project("second").model_copy(update={"id": "abc222"})
        store.save(a)
        store.save(b)
        with pytest.raises(ProjectNotFoundError, match="ambiguous"):
            store.find("abc")

    def test_list_newest_first_and_skips_corrupt(self, store):
        old = new_project("old").model_copy(update={"created_at": "2024-01-01T00:00:00+00:00"})
        new = new_project("new").model_copy(update={"created_at": "2025-01-01T00:00:00+00:00"})
        store.save(old)
        store.save(new)
        (store.projects_dir / "broken.json").write_text("[]")
        assert [p.idea for p in store.list()] == ["new", "old"]

    def test_list_empty_library(self, store):
        assert store.list() == []

    def test_delete(self, store, idle_project):
        store.save(idle_project)
        store.delete(idle_project.id)
        assert store.list_ids() == []
        with pytest.raises(ProjectNotFoundError):
            store.delete(idle_project.id)
