"""
Configuration for the extension runtime.

Provides a configuration object that can be loaded from YAML files,
dictionaries, or constructed programmatically, with a small set of
environment overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_HOME = Path.home() / ".agent-extensions"
DEFAULT_GLOBAL_DIR = DEFAULT_HOME / "extensions"
DEFAULT_STATE_DB = DEFAULT_HOME / "state.db"
DEFAULT_PROJECT_SUBDIR = ".agent-extensions/extensions"
DEFAULT_ENTRY_POINT_GROUP = "agent_extensions.extensions"

ENV_GLOBAL_DIR = "AGENT_EXTENSIONS_DIR"
ENV_HOT_RELOAD = "AGENT_EXTENSIONS_HOT_RELOAD"


def _env_flag(name: str) -> bool | None:
    val = os.environ.get(name)
    if val is None:
        return None
    return val.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ExtensionsConfig:
    """
    Main configuration for the extension runtime.

    Example YAML:
        global_dir: ~/.agent-extensions/extensions
        project_subdir: .agent-extensions/extensions
        hot_reload: true
        watch_debounce_ms: 1000
        disabled:
          - noisy-extension
        settings:
          code_index:
            binary: chunkhound
    """

    # Discovery
    global_dir: Path = field(default_factory=lambda: DEFAULT_GLOBAL_DIR)
    project_subdir: str = DEFAULT_PROJECT_SUBDIR
    entry_point_group: str | None = DEFAULT_ENTRY_POINT_GROUP

    # Hot reload
    hot_reload: bool = False
    watch_debounce_ms: int = 1000

    # Durable per-extension state (None = in-memory database)
    state_db_path: Path | None = None

    # Extensions never registered, by metadata name
    disabled: list[str] = field(default_factory=list)

    # Free-form settings readable through ExtensionContext.get_setting
    settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionsConfig:
        """Create config from a dictionary."""
        global_dir = data.get("global_dir")
        state_db = data.get("state_db_path")
        debounce = data.get("watch_debounce_ms")
        return cls(
            global_dir=Path(global_dir).expanduser() if global_dir else DEFAULT_GLOBAL_DIR,
            project_subdir=data.get("project_subdir") or DEFAULT_PROJECT_SUBDIR,
            entry_point_group=data.get("entry_point_group", DEFAULT_ENTRY_POINT_GROUP),
            hot_reload=bool(data.get("hot_reload", False)),
            watch_debounce_ms=1000 if debounce is None else int(debounce),
            state_db_path=Path(state_db).expanduser() if state_db else None,
            disabled=list(data.get("disabled") or []),
            settings=dict(data.get("settings") or {}),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> ExtensionsConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> ExtensionsConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, base: ExtensionsConfig | None = None) -> ExtensionsConfig:
        """Apply environment overrides on top of ``base`` (or the defaults)."""
        config = base or cls()
        env_dir = os.environ.get(ENV_GLOBAL_DIR)
        if env_dir:
            config.global_dir = Path(env_dir).expanduser()
        hot_reload = _env_flag(ENV_HOT_RELOAD)
        if hot_reload is not None:
            config.hot_reload = hot_reload
        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "global_dir": str(self.global_dir),
            "project_subdir": self.project_subdir,
            "entry_point_group": self.entry_point_group,
            "hot_reload": self.hot_reload,
            "watch_debounce_ms": self.watch_debounce_ms,
            "state_db_path": str(self.state_db_path) if self.state_db_path else None,
            "disabled": list(self.disabled),
            "settings": dict(self.settings),
        }

    def project_dir_for(self, project_dir: str | Path) -> Path:
        """Extension directory inside a project."""
        return Path(project_dir) / self.project_subdir

    def is_disabled(self, name: str) -> bool:
        return name in self.disabled
