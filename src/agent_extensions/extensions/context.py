"""
Extension context - the host surface handed to every hook and tool.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from agent_extensions.extensions.models import AgentProfile, TaskInfo
from agent_extensions.extensions.state import ExtensionStateStore
from agent_extensions.logging import get_extension_logger

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ExtensionContext:
    """
    Per-call view of the host for one extension.

    Example extension code:
        async def on_load(self, context):
            context.log("loaded", "info")
            runs = context.get_state("runs", 0)
            context.set_state("runs", runs + 1)
    """

    def __init__(
        self,
        extension_id: str,
        project_dir: str | None = None,
        task: TaskInfo | None = None,
        mode: str | None = None,
        agent_profile: AgentProfile | None = None,
        state_store: ExtensionStateStore | None = None,
        settings: Mapping[str, Any] | None = None,
    ) -> None:
        self.extension_id = extension_id
        self.mode = mode
        self.agent_profile = agent_profile
        self._project_dir = project_dir
        self._task = task
        self._state = state_store.scoped(extension_id) if state_store is not None else None
        self._settings = settings or {}
        self._logger = get_extension_logger(extension_id)

    def log(self, message: str, level: str = "info") -> None:
        """Log a message attributed to this extension."""
        self._logger.log(_LEVELS.get(level, logging.INFO), message)

    def get_project_dir(self) -> str:
        """Current project directory, or an empty string outside a project."""
        if self._project_dir:
            return self._project_dir
        if self._task is not None:
            return self._task.project_dir
        return ""

    def get_task(self) -> TaskInfo | None:
        return self._task

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Look up a setting; dots walk nested mappings ("code_index.binary")."""
        value: Any = self._settings
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return default
            value = value[part]
        return value

    def get_state(self, key: str, default: Any = None) -> Any:
        if self._state is None:
            return default
        return self._state.get(key, default)

    def set_state(self, key: str, value: Any) -> None:
        if self._state is None:
            raise RuntimeError("State store not available")
        self._state.set(key, value)
