"""Tests for configuration models."""

from pathlib import Path
from textwrap import dedent

import pytest

from agent_extensions.config import (
    DEFAULT_ENTRY_POINT_GROUP,
    DEFAULT_GLOBAL_DIR,
    DEFAULT_PROJECT_SUBDIR,
    ENV_GLOBAL_DIR,
    ENV_HOT_RELOAD,
    ExtensionsConfig,
)


class TestExtensionsConfig:
    """Tests for ExtensionsConfig."""

    def test_default_values(self) -> None:
        """Should have sensible defaults."""
        config = ExtensionsConfig()

        assert config.global_dir == DEFAULT_GLOBAL_DIR
        assert config.project_subdir == DEFAULT_PROJECT_SUBDIR
        assert config.entry_point_group == DEFAULT_ENTRY_POINT_GROUP
        assert config.hot_reload is False
        assert config.watch_debounce_ms == 1000
        assert config.state_db_path is None
        assert config.disabled == []
        assert config.settings == {}

    def test_from_dict(self) -> None:
        config = ExtensionsConfig.from_dict(
            {
                "global_dir": "/opt/extensions",
                "hot_reload": True,
                "watch_debounce_ms": 250,
                "state_db_path": "/tmp/state.db",
                "disabled": ["noisy"],
                "settings": {"code_index": {"binary": "ch"}},
            }
        )

        assert config.global_dir == Path("/opt/extensions")
        assert config.hot_reload is True
        assert config.watch_debounce_ms == 250
        assert config.state_db_path == Path("/tmp/state.db")
        assert config.is_disabled("noisy")
        assert not config.is_disabled("quiet")
        assert config.settings["code_index"]["binary"] == "ch"

    def test_from_yaml_string(self) -> None:
        yaml_content = dedent("""
            project_subdir: .ext
            entry_point_group: null
            disabled:
              - one
              - two
        """)

        config = ExtensionsConfig.from_yaml_string(yaml_content)

        assert config.project_subdir == ".ext"
        assert config.entry_point_group is None
        assert config.disabled == ["one", "two"]

    def test_keys_without_values(self) -> None:
        yaml_content = dedent("""
            project_subdir:
            watch_debounce_ms:
            disabled:
            settings:
        """)

        config = ExtensionsConfig.from_yaml_string(yaml_content)

        assert config.project_subdir == ExtensionsConfig().project_subdir
        assert config.watch_debounce_ms == 1000
        assert config.disabled == []
        assert config.settings == {}

    def test_from_empty_yaml(self) -> None:
        assert ExtensionsConfig.from_yaml_string("").hot_reload is False

    def test_from_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "agent-extensions.yaml"
        path.write_text("hot_reload: true\n")
        assert ExtensionsConfig.from_yaml(path).hot_reload is True

    def test_to_dict_roundtrip(self) -> None:
        config = ExtensionsConfig(global_dir=Path("/g"), disabled=["x"])
        restored = ExtensionsConfig.from_dict(config.to_dict())
        assert restored.global_dir == Path("/g")
        assert restored.disabled == ["x"]
        assert restored.state_db_path is None

    def test_project_dir_for(self) -> None:
        config = ExtensionsConfig()
        assert config.project_dir_for("/work/repo") == Path("/work/repo/.agent-extensions/extensions")


class TestEnvironmentOverrides:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv(ENV_GLOBAL_DIR, str(tmp_path))
        monkeypatch.setenv(ENV_HOT_RELOAD, "yes")

        config = ExtensionsConfig.from_env()

        assert config.global_dir == tmp_path
        assert config.hot_reload is True

    def test_env_flag_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_HOT_RELOAD, "0")
        base = ExtensionsConfig(hot_reload=True)
        assert ExtensionsConfig.from_env(base).hot_reload is False

    def test_no_env_keeps_base(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_GLOBAL_DIR, raising=False)
        monkeypatch.delenv(ENV_HOT_RELOAD, raising=False)
        base = ExtensionsConfig(global_dir=Path("/base"))
        assert ExtensionsConfig.from_env(base).global_dir == Path("/base")
