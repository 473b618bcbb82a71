"""Tests for config_loader: hierarchical YAML config.

Covers:
- ${VAR} and ${VAR:-default} interpolation
- !include with relative/absolute paths and cycle detection
- Convention-based file discovery and precedence
- Starter config creation
- Hierarchical merge
"""

from pathlib import Path

import pytest
import yaml

from govdir.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for interpolate_env_vars() and _interpolate_recursive()."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("GOVDIR_TEST_DIR", "/srv/data")
        assert interpolate_env_vars("${GOVDIR_TEST_DIR}/person") == "/srv/data/person"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("a${UNSET_VAR_XYZ}b") == "ab"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-data}") == "data"

    def test_empty_env_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${EMPTY_VAR:-fallback}") == "fallback"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("MY_SAFETY", "warn")
        assert interpolate_env_vars("${MY_SAFETY:-block}") == "warn"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("cost ${oops") == "cost ${oops"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("ITEM_VAL", "resolved")
        data = {"a": {"b": "${ITEM_VAL}"}, "c": ["${ITEM_VAL}", 3], "d": True}
        assert _interpolate_recursive(data) == {
            "a": {"b": "resolved"},
            "c": ["resolved", 3],
            "d": True,
        }


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class TestInclude:
    """Tests for the !include tag."""

    def test_include_relative_file(self, tmp_path):
        (tmp_path / "sync.yml").write_text("data_dir: data\n")
        main = tmp_path / "config.yml"
        main.write_text("sync: !include sync.yml\n")
        assert _load_yaml_with_includes(main) == {"sync": {"data_dir": "data"}}

    def test_include_absolute_path(self, tmp_path):
        other = tmp_path / "sub" / "logging.yml"
        other.parent.mkdir()
        other.write_text("level: DEBUG\n")
        main = tmp_path / "config.yml"
        main.write_text(f"logging: !include {other}\n")
        assert _load_yaml_with_includes(main) == {"logging": {"level": "DEBUG"}}

    def test_include_nonexistent_raises(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("sync: !include missing.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            _load_yaml_with_includes(main)

    def test_circular_include_raises(self, tmp_path):
        (tmp_path / "a.yml").write_text("x: !include b.yml\n")
        (tmp_path / "b.yml").write_text("y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_global_safe_loader_not_polluted(self):
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load("x: !include other.yml\n")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    """Tests for discover_config_files() and resolve_config_path()."""

    def test_nothing_found(self, isolated_env):
        assert discover_config_files() == []
        assert resolve_config_path() == (
            Path.cwd() / ".govdir" / "config.yml"
        )

    def test_precedence_order(self, isolated_env, monkeypatch):
        explicit = isolated_env / "explicit.yml"
        explicit.write_text("{}\n")
        project = isolated_env / ".govdir" / "config.yml"
        project.parent.mkdir()
        project.write_text("{}\n")
        xdg = isolated_env / "home" / ".config" / "govdir" / "config.yml"
        xdg.parent.mkdir(parents=True)
        xdg.write_text("{}\n")
        monkeypatch.setenv("GOVDIR_CONFIG", str(explicit))

        found = discover_config_files()

        assert [p.name for p in found] == ["explicit.yml", "config.yml", "config.yml"]
        assert found[0] == explicit.resolve()
        assert found[-1] == xdg

    def test_yaml_extension(self, isolated_env):
        alt = isolated_env / ".govdir" / "config.yaml"
        alt.parent.mkdir()
        alt.write_text("{}\n")
        assert discover_config_files() == [Path.cwd() / ".govdir" / "config.yaml"]


# ---------------------------------------------------------------------------
# Starter config
# ---------------------------------------------------------------------------


class TestEnsureConfig:
    def test_creates_starter(self, isolated_env):
        path = ensure_config()
        assert path == Path.cwd() / ".govdir" / "config.yml"
        assert "git_safety" in path.read_text()
        # Fully commented out, so it loads as nothing
        assert load_hierarchical_config() == {}

    def test_existing_kept(self, isolated_env):
        project = isolated_env / ".govdir" / "config.yml"
        project.parent.mkdir()
        project.write_text("sync:\n  data_dir: mine\n")
        assert ensure_config() == Path.cwd() / ".govdir" / "config.yml"
        assert "mine" in project.read_text()


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_no_files(self, isolated_env):
        assert load_hierarchical_config() == {}

    def test_higher_precedence_replaces_sections(self, isolated_env, monkeypatch):
        xdg = isolated_env / "home" / ".config" / "govdir" / "config.yml"
        xdg.parent.mkdir(parents=True)
        xdg.write_text(
            "sync:\n  data_dir: global\n  git_safety: warn\n"
            "logging:\n  level: INFO\n"
        )
        project = isolated_env / ".govdir" / "config.yml"
        project.parent.mkdir()
        project.write_text("sync:\n  data_dir: ${PROJECT_DATA:-local}\n")
        monkeypatch.delenv("PROJECT_DATA", raising=False)

        merged = load_hierarchical_config()

        assert merged == {
            "sync": {"data_dir": "local"},
            "logging": {"level": "INFO"},
        }

    def test_non_dict_root_skipped(self, isolated_env):
        project = isolated_env / ".govdir" / "config.yml"
        project.parent.mkdir()
        project.write_text("- just\n- a list\n")
        assert load_hierarchical_config() == {}
