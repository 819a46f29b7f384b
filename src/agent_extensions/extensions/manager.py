"""
Extension manager - loading, lifecycle, tool aggregation and event dispatch.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from agent_extensions.config import ExtensionsConfig
from agent_extensions.extensions.context import ExtensionContext
from agent_extensions.extensions.dispatch import FoldStep, fold_event
from agent_extensions.extensions.errors import ExtensionError, HookError, SupplierError, ValidationError
from agent_extensions.extensions.events import EVENT_TYPES, ProjectInfo, ProjectOpenedEvent
from agent_extensions.extensions.loader import ExtensionLoader, LoadedModule
from agent_extensions.extensions.models import (
    EVENT_HOOKS,
    GET_AGENTS,
    GET_TOOLS,
    ON_AGENT_PROFILE_UPDATED,
    ON_LOAD,
    ON_PROJECT_OPEN,
    ON_UNLOAD,
    TOOL_APPROVAL_NEVER,
    AgentProfile,
    RegisteredAgent,
    RegisteredTool,
    RegistryEntry,
    TaskInfo,
    TextContent,
    ToolDefinition,
    ToolResult,
)
from agent_extensions.extensions.registry import ExtensionRegistry, ToolOverrideTable
from agent_extensions.extensions.state import ExtensionStateStore
from agent_extensions.extensions.validation import (
    validate_agent_profile,
    validate_extension,
    validate_tool_definition,
)
from agent_extensions.extensions.watcher import ExtensionWatcher
from agent_extensions.logging import get_logger

logger = get_logger("extensions.manager")

E = TypeVar("E")


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async hook."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


async def _collect(
    entry: RegistryEntry,
    hook: str,
    errors: list[ExtensionError] | None,
    *args: Any,
) -> list[Any] | None:
    """
    Call a supplier hook and materialise its result.

    Any failure, including one raised while the returned sequence is read,
    yields ``None`` and a logged ``SupplierError`` (also appended to
    ``errors`` when given).
    """
    kind = hook.removeprefix("get_")
    try:
        result = await _call(getattr(entry.extension, hook), *args)
        if _is_sequence(result):
            return list(result)
        error = SupplierError(
            f"Extension '{entry.name}' {hook}() did not return a sequence (got {type(result).__name__})",
            extension_name=entry.name,
        )
        logger.error("%s", error)
    except Exception as e:
        error = SupplierError(f"Failed to collect {kind} from extension '{entry.name}': {e}", entry.name)
        logger.error("%s", error, exc_info=True)
    if errors is not None:
        errors.append(error)
    return None


def parse_tool_input(schema: Any, raw_input: Any) -> Any:
    """Validate caller input against a pydantic model class or TypeAdapter."""
    if isinstance(schema, TypeAdapter):
        return schema.validate_python(raw_input)
    return schema.model_validate(raw_input or {})


def json_schema_for(schema: Any) -> dict[str, Any]:
    if isinstance(schema, TypeAdapter):
        return schema.json_schema()
    return schema.model_json_schema()


def to_tool_result(value: Any) -> ToolResult:
    """Normalise whatever a tool returned into a ``ToolResult``."""
    if isinstance(value, ToolResult):
        return value
    if value is None:
        return ToolResult.text("(no output)")
    if isinstance(value, str):
        return ToolResult.text(value)
    if isinstance(value, BaseModel):
        return ToolResult.text(value.model_dump_json())
    try:
        return ToolResult.text(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return ToolResult.text(str(value))


@dataclass
class ExecutableTool:
    """A registered tool bound to a task, ready for the agent loop."""

    extension_name: str
    name: str
    description: str
    input_schema: Any
    run: Callable[[Any], Awaitable[ToolResult]]

    def definition(self) -> dict[str, Any]:
        """Tool definition in OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": json_schema_for(self.input_schema),
            },
        }


class ExtensionManager:
    """
    Owns the registry and is the only boundary between the host and
    extension code.

    Extensions are discovered from:
    1. Python entry points (group from config, default ``agent_extensions.extensions``)
    2. Global directory: ``~/.agent-extensions/extensions``
    3. Per project: ``<project>/.agent-extensions/extensions`` (project-bound)

    Every call into an extension is isolated: failures are logged with the
    extension's name and replaced by a safe default.
    """

    def __init__(
        self,
        config: ExtensionsConfig | None = None,
        registry: ExtensionRegistry | None = None,
        loader: ExtensionLoader | None = None,
        state_store: ExtensionStateStore | None = None,
        builtin_tools: Iterable[str] = (),
    ) -> None:
        self.config = config or ExtensionsConfig()
        self.registry = registry or ExtensionRegistry()
        self.loader = loader or ExtensionLoader(self.config.entry_point_group)
        self.state_store = state_store or ExtensionStateStore(self.config.state_db_path)
        self.builtin_tools = list(builtin_tools)

        self._global_watcher: ExtensionWatcher | None = None
        self._project_watchers: dict[str, ExtensionWatcher] = {}
        self._agents: dict[str, RegisteredAgent] = {}
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Load global and entry-point extensions and start hot reload."""
        logger.info("Starting extension system initialization...")
        self.registry.clear()
        await self.load_entry_points()
        await self.load_extensions_for_dir(self.config.global_dir)
        self._initialized = True

        if self.config.hot_reload and self._global_watcher is None:
            self._global_watcher = ExtensionWatcher(
                self.config.global_dir,
                on_change=lambda _changed: self.reload_global_extensions(),
                debounce_ms=self.config.watch_debounce_ms,
            )
            await self._global_watcher.start()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def create_context(
        self,
        extension_name: str,
        project_dir: str | None = None,
        task: TaskInfo | None = None,
        mode: str | None = None,
        agent_profile: AgentProfile | None = None,
    ) -> ExtensionContext:
        return ExtensionContext(
            extension_name,
            project_dir=project_dir,
            task=task,
            mode=mode,
            agent_profile=agent_profile,
            state_store=self.state_store,
            settings=self.config.settings,
        )

    async def load_extension(self, path: str | Path, project_dir: str | None = None) -> RegistryEntry | None:
        """Load, validate, register and initialize one extension file."""
        loaded = self.loader.load(path)
        if loaded is None:
            return None
        return await self.register_loaded(loaded, project_dir)

    async def register_loaded(self, loaded: LoadedModule, project_dir: str | None = None) -> RegistryEntry | None:
        """Validate an already-instantiated extension and bring it up."""
        metadata = loaded.metadata
        if self.config.is_disabled(metadata.name):
            logger.info("Extension '%s' is disabled, skipping", metadata.name)
            return None

        shape = validate_extension(loaded.extension, metadata)
        for warning in shape.warnings:
            logger.warning("Extension '%s': %s", metadata.name, warning)
        if not shape.is_valid:
            logger.error(
                "Extension '%s' from %s rejected: %s",
                metadata.name,
                loaded.module_path,
                ", ".join(shape.result.errors),
            )
            return None

        entry = self.registry.register(
            loaded.extension,
            metadata,
            loaded.module_path,
            project_dir=project_dir,
            capabilities=shape.capabilities,
        )
        if not await self._initialize(entry):
            return None
        logger.info("Loaded and initialized extension: %s v%s", metadata.name, metadata.version)
        return self.registry.get(entry.module_path)

    async def _initialize(self, entry: RegistryEntry) -> bool:
        if not entry.implements(ON_LOAD):
            self.registry.set_initialized(entry.module_path, True)
            return True

        context = self.create_context(entry.name, project_dir=entry.project_dir)
        try:
            await _call(entry.extension.on_load, context)
        except Exception as e:
            logger.error("Failed to call on_load for extension '%s': %s", entry.name, e, exc_info=True)
            self.registry.unregister(entry.module_path)
            return False

        self.registry.set_initialized(entry.module_path, True)
        return True

    async def load_extensions_for_dir(self, directory: str | Path, project_dir: str | None = None) -> int:
        """Load every extension in ``directory``. Returns how many came up."""
        paths = self.loader.discover(directory)
        initialized = 0
        for path in paths:
            if await self.load_extension(path, project_dir) is not None:
                initialized += 1
        if paths:
            logger.info("Loaded %d/%d extension(s) from %s", initialized, len(paths), directory)
        return initialized

    async def load_entry_points(self) -> int:
        initialized = 0
        for ep in self.loader.discover_entry_points():
            loaded = self.loader.load_entry_point(ep)
            if loaded is not None and await self.register_loaded(loaded) is not None:
                initialized += 1
        return initialized

    async def unload_extension(self, path: str | Path) -> bool:
        """Call ``on_unload`` (errors logged) and drop the entry."""
        entry = self.registry.get(str(path))
        if entry is None:
            return False

        if entry.initialized and entry.implements(ON_UNLOAD):
            try:
                await _call(entry.extension.on_unload)
                logger.debug("Called on_unload for extension: %s", entry.name)
            except Exception as e:
                logger.error("Failed to unload extension '%s': %s", entry.name, e, exc_info=True)

        self.registry.unregister(entry.module_path)
        self._agents = {k: v for k, v in self._agents.items() if v.extension_name != entry.name}
        logger.info("Unloaded extension: %s", entry.name)
        return True

    async def unload_extensions_for_dir(self, directory: str | Path) -> None:
        for entry in self.registry.under_directory(directory):
            await self.unload_extension(entry.module_path)

    async def reload_global_extensions(self) -> None:
        logger.info("Global extensions changed, reloading...")
        await self.unload_extensions_for_dir(self.config.global_dir)
        await self.load_extensions_for_dir(self.config.global_dir)

    async def reload_project_extensions(self, project_dir: str) -> None:
        """(Re)load the extensions bound to ``project_dir``."""
        ext_dir = self.config.project_dir_for(project_dir)
        logger.info("Reloading extensions for project: %s", project_dir)

        await self.unload_extensions_for_dir(ext_dir)
        await self.load_extensions_for_dir(ext_dir, project_dir)

        if self.config.hot_reload and project_dir not in self._project_watchers:

            async def on_change(_changed: set[Path]) -> None:
                logger.info("Project extensions changed for %s, reloading...", project_dir)
                await self.unload_extensions_for_dir(ext_dir)
                await self.load_extensions_for_dir(ext_dir, project_dir)

            watcher = ExtensionWatcher(ext_dir, on_change=on_change, debounce_ms=self.config.watch_debounce_ms)
            await watcher.start()
            self._project_watchers[project_dir] = watcher

    async def stop_project_watcher(self, project_dir: str) -> None:
        watcher = self._project_watchers.pop(project_dir, None)
        if watcher is not None:
            await watcher.stop()

    async def open_project(self, project_dir: str) -> ProjectOpenedEvent:
        """Load the project's own extensions, then announce the project."""
        await self.reload_project_extensions(project_dir)
        event = ProjectOpenedEvent(project=ProjectInfo(base_dir=project_dir))
        return await self.dispatch_event(ON_PROJECT_OPEN, event, project_dir=project_dir)

    async def dispose(self) -> None:
        """Stop watchers and unload every extension."""
        logger.info("Disposing extension system...")
        if self._global_watcher is not None:
            await self._global_watcher.stop()
            self._global_watcher = None
        for project_dir in list(self._project_watchers):
            await self.stop_project_watcher(project_dir)

        for entry in self.registry.list_all():
            await self.unload_extension(entry.module_path)

        self._initialized = False
        logger.info("Extension system disposed")

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def _active(self, project_dir: str | None) -> list[RegistryEntry]:
        return [e for e in self.registry.list_for(project_dir) if e.initialized]

    async def get_tools(
        self,
        task: TaskInfo | None = None,
        mode: str = "agent",
        agent_profile: AgentProfile | None = None,
        errors: list[ExtensionError] | None = None,
    ) -> list[RegisteredTool]:
        """
        Tools applicable to ``task``, validated and override-resolved.

        Order is registration order, then supplier order. When names
        collide the later-registered extension wins and the loser is
        dropped; extension tools also shadow ``builtin_tools``.

        A failing supplier or a rejected tool is logged and skipped. When
        ``errors`` is given it also receives a ``SupplierError`` or
        ``ValidationError`` for each of them.
        """
        project_dir = task.project_dir if task is not None else None
        overrides = ToolOverrideTable(self.builtin_tools)
        candidates: list[tuple[tuple[int, int], RegisteredTool]] = []

        for entry in self._active(project_dir):
            if not entry.implements(GET_TOOLS):
                continue

            context = self.create_context(
                entry.name, project_dir=project_dir, task=task, mode=mode, agent_profile=agent_profile
            )
            tools = await _collect(entry, GET_TOOLS, errors, context, mode, agent_profile)
            if tools is None:
                continue

            for index, tool in enumerate(tools):
                validation = validate_tool_definition(tool)
                if not validation.is_valid:
                    error = ValidationError(
                        f"Invalid tool '{_safe_name(tool)}' from extension '{entry.name}'",
                        errors=validation.errors,
                        extension_name=entry.name,
                    )
                    logger.error("%s: %s", error, ", ".join(error.errors))
                    if errors is not None:
                        errors.append(error)
                    continue

                registered = RegisteredTool(extension_name=entry.name, tool=ToolDefinition.coerce(tool))
                priority = (entry.order, index)
                loser = overrides.claim(registered.name, entry.name, priority)
                if loser is not None and loser.priority != priority:
                    logger.warning(
                        "Tool '%s' already provided by %s, overriding with %s",
                        registered.name,
                        loser.extension_name,
                        entry.name,
                    )
                candidates.append((priority, registered))

        tools_out = [registered for priority, registered in candidates if overrides.owns(registered.name, priority)]
        if tools_out:
            logger.debug("Collected %d tool(s) from extensions", len(tools_out))
        return tools_out

    async def create_toolset(
        self,
        task: TaskInfo,
        mode: str = "agent",
        agent_profile: AgentProfile | None = None,
        abort_signal: asyncio.Event | None = None,
    ) -> dict[str, ExecutableTool]:
        """Bind applicable tools to ``task`` with error isolation."""
        toolset: dict[str, ExecutableTool] = {}
        approvals = agent_profile.tool_approvals if agent_profile is not None else {}

        for registered in await self.get_tools(task, mode, agent_profile):
            tool = registered.tool
            if approvals.get(tool.name) == TOOL_APPROVAL_NEVER:
                logger.debug("Skipping tool '%s' (marked as never approved)", tool.name)
                continue

            context = self.create_context(
                registered.extension_name,
                project_dir=task.project_dir,
                task=task,
                mode=mode,
                agent_profile=agent_profile,
            )
            toolset[tool.name] = ExecutableTool(
                extension_name=registered.extension_name,
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                run=functools.partial(self._run_tool, registered, context, abort_signal),
            )
        return toolset

    async def _run_tool(
        self,
        registered: RegisteredTool,
        context: ExtensionContext,
        abort_signal: asyncio.Event | None,
        raw_input: Any,
    ) -> ToolResult:
        tool = registered.tool
        try:
            parsed = parse_tool_input(tool.input_schema, raw_input)
        except SchemaValidationError as e:
            return ToolResult.error(f"Invalid input for tool '{tool.name}': {e}")

        try:
            return to_tool_result(await _call(tool.execute, parsed, abort_signal, context))
        except Exception as e:
            logger.error(
                "Tool '%s' failed in extension '%s': %s",
                tool.name,
                registered.extension_name,
                e,
                exc_info=True,
            )
            return ToolResult(content=[TextContent(text=f"Error: {e}")], is_error=True)

    async def execute_tool(
        self,
        task: TaskInfo,
        name: str,
        raw_input: Any,
        mode: str = "agent",
        agent_profile: AgentProfile | None = None,
        abort_signal: asyncio.Event | None = None,
    ) -> ToolResult:
        toolset = await self.create_toolset(task, mode, agent_profile, abort_signal)
        if name not in toolset:
            raise LookupError(f"Extension tool '{name}' not found")
        return await toolset[name].run(raw_input)

    # ------------------------------------------------------------------
    # Agent profiles
    # ------------------------------------------------------------------

    async def get_agents(
        self,
        project_dir: str | None = None,
        errors: list[ExtensionError] | None = None,
    ) -> list[RegisteredAgent]:
        collected: list[RegisteredAgent] = []
        for entry in self._active(project_dir):
            if not entry.implements(GET_AGENTS):
                continue

            context = self.create_context(entry.name, project_dir=project_dir)
            agents = await _collect(entry, GET_AGENTS, errors, context)
            if agents is None:
                continue

            for agent in agents:
                validation = validate_agent_profile(agent)
                if not validation.is_valid:
                    error = ValidationError(
                        f"Invalid agent from extension '{entry.name}'",
                        errors=validation.errors,
                        extension_name=entry.name,
                    )
                    logger.error("%s: %s", error, ", ".join(error.errors))
                    if errors is not None:
                        errors.append(error)
                    continue
                if isinstance(agent, Mapping):
                    agent = _agent_from_mapping(agent)
                registered = RegisteredAgent(extension_name=entry.name, agent=agent)
                self._agents[agent.id] = registered
                collected.append(registered)

        return collected

    async def update_agent_profile(self, profile: AgentProfile) -> AgentProfile | None:
        """
        Route an edit of an extension-provided profile to its owner.

        Returns None when ``profile`` is not an extension agent or the
        extension failed to produce an updated profile.
        """
        registered = self._agents.get(profile.id)
        if registered is None:
            return None

        entry = self.registry.find_by_name(registered.extension_name)
        if entry is None:
            return None
        if not entry.implements(ON_AGENT_PROFILE_UPDATED):
            raise ExtensionError(
                f"Extension '{entry.name}' does not support profile updates",
                extension_name=entry.name,
            )

        context = self.create_context(entry.name)
        logger.info("Updating agent profile '%s' via extension '%s'", profile.id, entry.name)
        try:
            updated = await _call(entry.extension.on_agent_profile_updated, context, profile.id, profile)
        except Exception as e:
            logger.error("Extension '%s' failed to update profile '%s': %s", entry.name, profile.id, e, exc_info=True)
            return None

        if updated is None:
            logger.error("Extension '%s' did not return an updated profile", entry.name)
            return None

        self._agents[profile.id] = RegisteredAgent(extension_name=entry.name, agent=updated)
        return updated

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def dispatch_event(
        self,
        hook: str,
        event: E,
        project_dir: str | None = None,
        task: TaskInfo | None = None,
        errors: list[HookError] | None = None,
    ) -> E:
        """
        Fold ``event`` through every visible extension implementing ``hook``.

        Extensions run one at a time in registration order. Each may return
        a partial override that the next extension (and the caller) sees.
        """
        if hook not in EVENT_HOOKS:
            raise ValueError(f"Unknown event hook '{hook}'")
        expected = EVENT_TYPES[hook]
        if not isinstance(event, expected):
            raise TypeError(f"'{hook}' expects {expected.__name__}, got {type(event).__name__}")

        if project_dir is None and task is not None:
            project_dir = task.project_dir

        steps = [
            FoldStep(
                extension_name=entry.name,
                handler=_bind_context(
                    getattr(entry.extension, hook),
                    self.create_context(entry.name, project_dir=project_dir, task=task),
                ),
            )
            for entry in self._active(project_dir)
            if entry.implements(hook)
        ]
        if not steps:
            return event
        return await fold_event(event, steps, hook=hook, errors=errors)


def _agent_from_mapping(data: Mapping[str, Any]) -> AgentProfile:
    known = {f.name for f in fields(AgentProfile)}
    extra = {k: v for k, v in data.items() if k not in known}
    values = {k: v for k, v in data.items() if k in known}
    values["extra"] = {**values.get("extra", {}), **extra}
    return AgentProfile(**values)


def _bind_context(hook: Callable[..., Any], context: ExtensionContext) -> Callable[[Any], Any]:
    def handler(event: Any) -> Any:
        return hook(event, context)

    return handler


def _safe_name(tool: Any) -> str:
    try:
        if isinstance(tool, dict):
            return str(tool.get("name"))
        return str(getattr(tool, "name", None))
    except Exception:
        return "<unreadable>"
