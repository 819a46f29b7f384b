"""
Data models for the extension system.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Union

# Lifecycle hooks
ON_LOAD = "on_load"
ON_UNLOAD = "on_unload"

# Event hooks
ON_PROJECT_OPEN = "on_project_open"
ON_TOOL_APPROVAL = "on_tool_approval"
ON_TOOL_CALLED = "on_tool_called"
ON_TOOL_FINISHED = "on_tool_finished"
ON_AGENT_STARTED = "on_agent_started"
ON_PROMPT_STARTED = "on_prompt_started"
ON_PROMPT_FINISHED = "on_prompt_finished"
ON_FILES_ADDED = "on_files_added"
ON_FILES_DROPPED = "on_files_dropped"

# Agent profile edits routed back to the owning extension
ON_AGENT_PROFILE_UPDATED = "on_agent_profile_updated"

# Suppliers
GET_TOOLS = "get_tools"
GET_AGENTS = "get_agents"

EVENT_HOOKS = frozenset(
    {
        ON_PROJECT_OPEN,
        ON_TOOL_APPROVAL,
        ON_TOOL_CALLED,
        ON_TOOL_FINISHED,
        ON_AGENT_STARTED,
        ON_PROMPT_STARTED,
        ON_PROMPT_FINISHED,
        ON_FILES_ADDED,
        ON_FILES_DROPPED,
    }
)

HOOK_NAMES = EVENT_HOOKS | {ON_LOAD, ON_UNLOAD, ON_AGENT_PROFILE_UPDATED, GET_TOOLS, GET_AGENTS}

CAPABILITY_TAGS = frozenset({"events", "tools"})


@dataclass(frozen=True)
class ExtensionMetadata:
    """Metadata declared by an extension module. Immutable once registered."""

    name: str
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    capabilities: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_name: str = "") -> ExtensionMetadata:
        return cls(
            name=str(data.get("name") or default_name),
            version=str(data.get("version") or "1.0.0"),
            description=str(data.get("description") or ""),
            author=str(data.get("author") or ""),
            capabilities=tuple(data.get("capabilities") or ()),
        )


@dataclass(frozen=True)
class RegistryEntry:
    """A registered extension instance plus its scope.

    ``project_dir`` is ``None`` for a global extension, otherwise the exact
    project base directory the extension is bound to.
    """

    extension: Any
    metadata: ExtensionMetadata
    module_path: str
    project_dir: str | None = None
    order: int = 0
    initialized: bool = False
    capabilities: frozenset[str] = frozenset()

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def is_global(self) -> bool:
        return self.project_dir is None

    def visible_to(self, project_dir: str | None) -> bool:
        return self.project_dir is None or self.project_dir == project_dir

    def implements(self, hook: str) -> bool:
        return hook in self.capabilities


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


@dataclass
class TextContent:
    text: str
    type: Literal["text"] = "text"


@dataclass
class ImageContent:
    """Image or other media payload. ``source`` is provider specific."""

    source: Any = None
    data: str | None = None
    mime_type: str | None = None
    type: Literal["image", "media"] = "image"


ContentItem = Union[TextContent, ImageContent]


@dataclass
class ToolResult:
    """Result returned by tool execution."""

    content: list[ContentItem] = field(default_factory=list)
    details: dict[str, Any] | None = None
    is_error: bool = False

    @classmethod
    def text(cls, text: str, details: dict[str, Any] | None = None) -> ToolResult:
        return cls(content=[TextContent(text=text)], details=details)

    @classmethod
    def error(cls, message: str, details: dict[str, Any] | None = None) -> ToolResult:
        return cls(content=[TextContent(text=message)], details=details, is_error=True)

    @property
    def text_content(self) -> str:
        """All text items joined by newlines."""
        return "\n".join(item.text for item in self.content if isinstance(item, TextContent))


# execute(input, abort_signal, context) -> ToolResult | str | Any
ToolExecute = Callable[..., Awaitable[Any]]


@dataclass
class ToolDefinition:
    """A tool an extension exposes to the agent layer.

    ``input_schema`` is a pydantic model class (or ``TypeAdapter``) used to
    parse caller-supplied input before ``execute`` runs.
    """

    name: str
    description: str
    input_schema: Any
    execute: ToolExecute

    @classmethod
    def coerce(cls, tool: Any) -> ToolDefinition:
        """Turn a validated mapping or attribute object into a ToolDefinition."""
        if isinstance(tool, ToolDefinition):
            return tool
        if isinstance(tool, Mapping):
            return cls(
                name=tool["name"],
                description=tool["description"],
                input_schema=tool["input_schema"],
                execute=tool["execute"],
            )
        return cls(
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
            execute=tool.execute,
        )


@dataclass(frozen=True)
class RegisteredTool:
    """A validated tool tagged with the extension that supplied it."""

    extension_name: str
    tool: ToolDefinition

    @property
    def name(self) -> str:
        return self.tool.name


# ---------------------------------------------------------------------------
# Agent profiles
# ---------------------------------------------------------------------------


@dataclass
class ProviderProfile:
    """Provider selection attached to an agent run."""

    provider: dict[str, Any] = field(default_factory=dict)
    model: str = ""

    @property
    def provider_name(self) -> str:
        return str(self.provider.get("name", ""))


# Values of AgentProfile.tool_approvals
TOOL_APPROVAL_ALWAYS = "always"
TOOL_APPROVAL_ASK = "ask"
TOOL_APPROVAL_NEVER = "never"


@dataclass
class AgentProfile:
    """An agent profile; extensions may contribute their own."""

    id: str
    name: str
    provider: str = ""
    model: str = ""
    system_prompt: str = ""
    tool_approvals: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TaskInfo:
    """The task an agent is working on; tools are scoped by its project."""

    id: str
    project_dir: str
    name: str = ""


@dataclass(frozen=True)
class RegisteredAgent:
    extension_name: str
    agent: AgentProfile


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid
