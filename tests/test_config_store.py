"""
Tests for the local project token store
"""

import json
import stat

import pytest

from rollbaz.errors import ConfigError, DecodeError
from rollbaz.services.config_store import ConfigStore


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "rollbaz" / "config.json")


class TestConfigStore:
    def test_load_missing_file(self, store):
        """Test a missing file is an empty configuration"""
        config = store.load()

        assert config.active_project == ""
        assert config.projects == []

    def test_first_project_becomes_active(self, store):
        store.add_project("web", "tok-web")

        assert store.load().active_project == "web"
        assert store.resolve_token() == ("tok-web", "web")

    def test_add_updates_existing(self, store):
        """Test re-adding a project replaces its token"""
        store.add_project("web", "old")
        store.add_project("web", "new")

        config = store.load()
        assert len(config.projects) == 1
        assert config.projects[0].token == "new"

    def test_projects_sorted_by_name(self, store):
        store.add_project("zeta", "z")
        store.add_project("alpha", "a")

        assert [project.name for project in store.load().projects] == ["alpha", "zeta"]
        assert store.load().active_project == "zeta"

    @pytest.mark.parametrize("name, token", [("", "tok"), ("  ", "tok"), ("web", ""), ("web", " ")])
    def test_add_requires_name_and_token(self, store, name, token):
        with pytest.raises(ConfigError):
            store.add_project(name, token)

    def test_file_permissions(self, store):
        """Test the token file is readable by its owner only"""
        store.add_project("web", "tok-web")

        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
        assert stat.S_IMODE(store.path.parent.stat().st_mode) == 0o700

    def test_file_format(self, store):
        store.add_project("web", "tok-web")

        content = store.path.read_text()
        assert content.endswith("\n")
        assert json.loads(content) == {
            "active_project": "web",
            "projects": [{"name": "web", "token": "tok-web"}],
        }

    def test_use_project(self, store):
        store.add_project("api", "tok-api")
        store.add_project("web", "tok-web")

        store.use_project("web")

        assert store.resolve_token() == ("tok-web", "web")

    def test_use_unknown_project(self, store):
        store.add_project("api", "tok-api")

        with pytest.raises(ConfigError, match='project "web" not found'):
            store.use_project("web")

    def test_cycle_wraps_around(self, store):
        """Test cycling walks projects in name order and wraps"""
        for name in ("a", "b", "c"):
            store.add_project(name, f"tok-{name}")

        assert [store.cycle_project() for _ in range(3)] == ["b", "c", "a"]

    def test_cycle_without_projects(self, store):
        with pytest.raises(ConfigError, match="no configured projects"):
            store.cycle_project()

    def test_remove_active_project(self, store):
        """Test removing the active project activates the first remaining one"""
        store.add_project("api", "tok-api")
        store.add_project("web", "tok-web")
        store.use_project("web")

        store.remove_project("web")

        assert store.load().active_project == "api"

    def test_remove_last_project(self, store):
        store.add_project("api", "tok-api")

        store.remove_project("api")

        assert store.load().active_project == ""

    def test_remove_unknown_project(self, store):
        with pytest.raises(ConfigError, match='project "web" not found'):
            store.remove_project("web")

    def test_remove_all(self, store):
        store.add_project("api", "tok-api")
        store.add_project("web", "tok-web")

        store.remove_all_projects()

        assert store.load().projects == []

    def test_resolve_named_project(self, store):
        store.add_project("api", "tok-api")
        store.add_project("web", "tok-web")

        assert store.resolve_token("web") == ("tok-web", "web")

    def test_resolve_errors(self, store):
        with pytest.raises(ConfigError, match="no configured projects"):
            store.resolve_token()

        store.add_project("api", "tok-api")
        with pytest.raises(ConfigError, match='project "web" not found'):
            store.resolve_token("web")

    def test_resolve_without_active_project(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"projects": [{"name": "api", "token": "t"}]}))

        with pytest.raises(ConfigError, match="no active project configured"):
            store.resolve_token()

    def test_resolve_project_without_token(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(
            json.dumps({"active_project": "api", "projects": [{"name": "api", "token": " "}]})
        )

        with pytest.raises(ConfigError, match='project "api" has no token'):
            store.resolve_token()

    def test_malformed_file(self, store):
        """Test a corrupt file is a decode error"""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        with pytest.raises(DecodeError, match="^decode config: "):
            store.load()
