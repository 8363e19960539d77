"""Tests for goodnight_journal.config_loader - hierarchical config loading."""

import textwrap

import pytest
import yaml

from goodnight_journal.config_loader import (
    _interpolate_recursive,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)

# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("GJ_PROJECT", "nightly")
        assert interpolate_env_vars("${GJ_PROJECT}") == "nightly"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR_XYZ", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-fallback}") == "fallback"
        assert interpolate_env_vars("${EMPTY_VAR_XYZ:-fallback}") == "fallback"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("GJ_DELAY", "2")
        assert interpolate_env_vars("${GJ_DELAY:-1}") == "2"

    def test_unclosed_pattern_left_alone(self):
        assert interpolate_env_vars("cost: ${") == "cost: ${"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("GJ_UID", "u-42")
        data = {"auth": {"user_id": "${GJ_UID}", "retries": 3}, "tags": ["${GJ_UID}"]}
        assert _interpolate_recursive(data) == {
            "auth": {"user_id": "u-42", "retries": 3},
            "tags": ["u-42"],
        }


# -------------------------------------------------------------------------
# Discovery and merge
# -------------------------------------------------------------------------


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with an empty CWD and HOME and no explicit config path."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    monkeypatch.delenv("GOODNIGHT_JOURNAL_CONFIG", raising=False)
    return home, work


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


class TestDiscovery:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_precedence_order(self, isolated, monkeypatch, tmp_path):
        home, work = isolated
        explicit = _write(tmp_path / "explicit.yml", "a: 1\n")
        project = _write(work / ".goodnight_journal" / "config.yml", "a: 2\n")
        user = _write(home / ".config" / "goodnight_journal" / "config.yml", "a: 3\n")
        monkeypatch.setenv("GOODNIGHT_JOURNAL_CONFIG", str(explicit))

        found = discover_config_files()

        assert [p.resolve() for p in found] == [
            explicit.resolve(),
            project.resolve(),
            user.resolve(),
        ]

    def test_project_sections_replace_user_sections(self, isolated):
        home, work = isolated
        _write(
            home / ".config" / "goodnight_journal" / "config.yml",
            """\
            remote:
              project_id: user-project
              read_timeout: 99
            logging:
              level: DEBUG
            """,
        )
        _write(
            work / ".goodnight_journal" / "config.yml",
            """\
            remote:
              project_id: project-project
            """,
        )

        merged = load_hierarchical_config()

        # Shallow merge: the whole remote section comes from the project file.
        assert merged["remote"] == {"project_id": "project-project"}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_interpolation_applied_after_merge(self, isolated, monkeypatch):
        _, work = isolated
        monkeypatch.setenv("GJ_TOKEN", "secret")
        _write(
            work / ".goodnight_journal" / "config.yml",
            "auth:\n  id_token: ${GJ_TOKEN}\n  user_id: ${GJ_MISSING:-nobody}\n",
        )
        assert load_hierarchical_config()["auth"] == {
            "id_token": "secret",
            "user_id": "nobody",
        }

    def test_non_dict_root_skipped(self, isolated):
        _, work = isolated
        _write(work / ".goodnight_journal" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}

    def test_invalid_yaml_raises(self, isolated):
        _, work = isolated
        _write(work / ".goodnight_journal" / "config.yml", "remote: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


class TestEnsureConfig:
    def test_creates_starter_in_project_dir(self, isolated):
        _, work = isolated
        path = ensure_config()
        assert path == work / ".goodnight_journal" / "config.yml"
        assert "goodnight-journal configuration" in path.read_text()
        # The starter is entirely commented out, so it loads as empty.
        assert load_hierarchical_config() == {}

    def test_existing_file_is_left_alone(self, isolated):
        _, work = isolated
        existing = _write(work / ".goodnight_journal" / "config.yml", "a: 1\n")
        assert ensure_config() == existing
        assert existing.read_text() == "a: 1\n"

    def test_explicit_target(self, isolated, tmp_path):
        target = tmp_path / "custom" / "config.yml"
        assert ensure_config(target) == target
        assert target.exists()

    def test_resolve_default_path(self, isolated):
        _, work = isolated
        assert resolve_config_path() == work / ".goodnight_journal" / "config.yml"
