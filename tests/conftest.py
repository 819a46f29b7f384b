"""Shared pytest fixtures for agent-extensions tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from textwrap import dedent

import pytest

from agent_extensions.config import ExtensionsConfig
from agent_extensions.extensions.manager import ExtensionManager
from agent_extensions.extensions.models import TaskInfo


@pytest.fixture
def global_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "global"
    directory.mkdir()
    return directory


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def config(global_dir: Path) -> ExtensionsConfig:
    """Config that only sees the temporary global directory."""
    return ExtensionsConfig(global_dir=global_dir, entry_point_group=None)


@pytest.fixture
def manager(config: ExtensionsConfig) -> ExtensionManager:
    return ExtensionManager(config, builtin_tools=["read-file", "semantic-search"])


@pytest.fixture
def task(project_dir: Path) -> TaskInfo:
    return TaskInfo(id="task-1", project_dir=str(project_dir))


@pytest.fixture
def write_extension() -> Callable[[Path, str, str], Path]:
    """Write an extension module ``<directory>/<name>.py`` and return its path."""

    def _write(directory: Path, name: str, body: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.py"
        path.write_text(dedent(body))
        return path

    return _write


ECHO_EXTENSION = """
from pydantic import BaseModel

metadata = {"name": "%(name)s", "version": "1.2.0", "description": "Echo tools"}


class EchoInput(BaseModel):
    text: str


class Echo:
    def get_tools(self, context, mode, agent_profile):
        async def execute(params, abort_signal, context):
            return "%(name)s:" + params.text

        return [
            {
                "name": "%(tool)s",
                "description": "Echo text back",
                "input_schema": EchoInput,
                "execute": execute,
            }
        ]


extension = Echo
"""


@pytest.fixture
def echo_source() -> Callable[..., str]:
    """Source for an extension exposing one echo tool."""

    def _source(name: str, tool: str = "echo") -> str:
        return ECHO_EXTENSION % {"name": name, "tool": tool}

    return _source
