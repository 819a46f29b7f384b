"""
Semantic code search backed by an external indexer (ChunkHound-style CLI).

The indexer builds a database per project directory and answers queries
against it:

    chunkhound index --db <project>/.chunkhound.db [--config FILE]
    chunkhound search --db <project>/.chunkhound.db QUERY [--page-size N] [--offset N]

Indexing is single-flight per project and re-runs lazily after a file
editing tool reports a change.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from agent_extensions.extensions.context import ExtensionContext
from agent_extensions.extensions.errors import AbortedError, ProcessError
from agent_extensions.extensions.events import ProjectOpenedEvent, ToolFinishedEvent
from agent_extensions.extensions.models import ToolDefinition, ToolResult
from agent_extensions.runtime.jobs import JobController, JobOutcome
from agent_extensions.runtime.process import (
    DEFAULT_GRACE_PERIOD,
    ProcessTable,
    Spawner,
    WorkerCommand,
    run_worker,
    spawn_worker,
)

DB_NAME = ".chunkhound.db"
CONFIG_ENV = "CHUNKHOUND_CONFIG_FILE"
DEFAULT_EDIT_TOOLS = frozenset({"file_edit", "file_write"})
TOOL_NAME = "semantic-search"

metadata = {
    "name": "code-index",
    "version": "1.0.0",
    "description": "Semantic code search over a per-project index",
    "author": "agent-extensions",
    "capabilities": ["tools", "events"],
}


class SearchInput(BaseModel):
    query: str = Field(description="Search query. Use + for important terms.")
    page_size: int = Field(default=10, ge=1, description="Number of results per page")
    offset: int = Field(default=0, ge=0, description="Page offset for results (0-based)")


class CodeIndexExtension:
    """
    Contributes ``semantic-search`` and keeps the index fresh.

    Args:
        binary: Indexer executable
        config_path: Optional indexer config file, passed as ``--config``
        edit_tools: Tool names whose completion invalidates the index
        spawner: Process factory, replaceable in tests
    """

    def __init__(
        self,
        binary: str = "chunkhound",
        config_path: str | Path | None = None,
        edit_tools: frozenset[str] = DEFAULT_EDIT_TOOLS,
        spawner: Spawner = spawn_worker,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        version_timeout: float = 30.0,
    ) -> None:
        self.binary = binary
        self.config_path = Path(config_path) if config_path else None
        self.edit_tools = frozenset(edit_tools)
        self.spawner = spawner
        self.grace_period = grace_period
        self.version_timeout = version_timeout

        self.available = False
        self.searches = ProcessTable()
        self.indexer = JobController(
            self.index_command,
            artifact_exists=lambda project_dir: self.db_path(project_dir).exists(),
            spawner=spawner,
            name="code-index",
            grace_period=grace_period,
        )

    # Commands

    def db_path(self, project_dir: str) -> Path:
        return Path(project_dir) / DB_NAME

    def _env(self) -> dict[str, str]:
        if self.config_path is None:
            return {}
        return {CONFIG_ENV: str(self.config_path)}

    def _config_args(self) -> list[str]:
        if self.config_path is None:
            return []
        return ["--config", str(self.config_path)]

    def index_command(self, project_dir: str) -> WorkerCommand:
        args = ["index", "--db", str(self.db_path(project_dir)), *self._config_args()]
        return WorkerCommand(self.binary, args, cwd=project_dir, env=self._env())

    def search_command(self, project_dir: str, query: str, page_size: int, offset: int) -> WorkerCommand:
        args = ["search", "--db", str(self.db_path(project_dir)), query, *self._config_args()]
        args += ["--page-size", str(page_size)]
        if offset > 0:
            args += ["--offset", str(offset)]
        return WorkerCommand(self.binary, args, cwd=project_dir, env=self._env())

    # Lifecycle

    async def on_load(self, context: ExtensionContext) -> None:
        self.binary = context.get_setting("code_index.binary", self.binary)
        config_path = context.get_setting("code_index.config_path")
        if config_path:
            self.config_path = Path(config_path).expanduser()

        try:
            await run_worker(
                WorkerCommand(self.binary, ["--version"]),
                timeout=self.version_timeout,
                check=True,
                spawner=self.spawner,
            )
        except ProcessError as e:
            context.log(f"{self.binary} is not available, semantic search disabled: {e}", "error")
            self.available = False
            return

        if self.config_path is not None and not self.config_path.exists():
            context.log(f"Indexer config not found: {self.config_path}", "warning")
        self.available = True
        context.log("Code index extension loaded", "info")

    async def on_unload(self) -> None:
        await self.indexer.shutdown()
        self.searches.terminate_all()

    # Events

    async def on_project_open(self, event: ProjectOpenedEvent, context: ExtensionContext) -> None:
        if not self.available:
            return None

        project_dir = event.project.base_dir
        if not self.db_path(project_dir).exists():
            context.log(f"Starting background indexing for {project_dir}", "info")
            self.indexer.start(project_dir)
        return None

    async def on_tool_finished(self, event: ToolFinishedEvent, context: ExtensionContext) -> None:
        if not self.available or event.tool_name not in self.edit_tools:
            return None

        tool_input = event.input or {}
        file_path = tool_input.get("file_path") or tool_input.get("path")
        if not file_path:
            return None

        project_dir = context.get_project_dir()
        if project_dir:
            context.log(f"{event.tool_name} modified {file_path}; index marked stale", "debug")
            self.indexer.mark_stale(project_dir)
        return None

    # Tools

    def get_tools(self, context: ExtensionContext, mode: str, agent_profile: Any = None) -> list[ToolDefinition]:
        if not self.available:
            return []
        return [
            ToolDefinition(
                name=TOOL_NAME,
                description=(
                    "Search code in the repository using semantic search. Use natural language "
                    "queries of 2-5 descriptive words. Use this first for code questions to find "
                    "related files."
                ),
                input_schema=SearchInput,
                execute=self.search,
            )
        ]

    async def search(
        self,
        params: SearchInput,
        abort_signal: asyncio.Event | None,
        context: ExtensionContext,
    ) -> ToolResult:
        project_dir = context.get_project_dir()
        if not project_dir:
            return ToolResult.error("Error: No project directory available for search.")

        outcome = await self.indexer.ensure(project_dir, abort_signal)
        if outcome is JobOutcome.ABORTED:
            return ToolResult.error("Error: Search was aborted.")
        if not outcome.ok:
            return ToolResult.error(
                "Error: Failed to index project. Make sure the indexer is installed and configured."
            )

        context.log(
            f"Running search: query={params.query!r} page_size={params.page_size} offset={params.offset}",
            "info",
        )
        command = self.search_command(project_dir, params.query, params.page_size, params.offset)
        try:
            result = await run_worker(
                command,
                abort_signal=abort_signal,
                tracker=self.searches,
                key=project_dir,
                spawner=self.spawner,
                grace_period=self.grace_period,
            )
        except AbortedError:
            return ToolResult.error("Error: Search was aborted.")
        except ProcessError as e:
            context.log(f"Search failed: {e}", "error")
            return ToolResult.error(f"Error: Search failed: {e}")

        if result.stderr and not result.stdout:
            context.log(f"Search error: {result.stderr}", "error")
            return ToolResult.error(f"Error: Search failed: {result.stderr.strip()}")
        return ToolResult.text(result.stdout.strip() or "No results found.")


extension = CodeIndexExtension
