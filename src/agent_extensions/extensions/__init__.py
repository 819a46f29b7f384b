"""
Extension system: discovery, registry, tool aggregation and event dispatch.
"""

from agent_extensions.extensions.context import ExtensionContext
from agent_extensions.extensions.dispatch import FoldStep, fold_event, merge_partial
from agent_extensions.extensions.errors import (
    AbortedError,
    ExtensionError,
    HookError,
    LoadError,
    ProcessError,
    SupplierError,
    ValidationError,
)
from agent_extensions.extensions.events import (
    AgentStartedEvent,
    FileRef,
    FilesAddedEvent,
    FilesDroppedEvent,
    ProjectInfo,
    ProjectOpenedEvent,
    PromptFinishedEvent,
    PromptStartedEvent,
    ResponseData,
    ToolApprovalEvent,
    ToolCalledEvent,
    ToolFinishedEvent,
)
from agent_extensions.extensions.loader import ExtensionLoader, LoadedModule
from agent_extensions.extensions.manager import ExecutableTool, ExtensionManager
from agent_extensions.extensions.models import (
    ON_AGENT_PROFILE_UPDATED,
    ON_AGENT_STARTED,
    ON_FILES_ADDED,
    ON_FILES_DROPPED,
    ON_LOAD,
    ON_PROJECT_OPEN,
    ON_PROMPT_FINISHED,
    ON_PROMPT_STARTED,
    ON_TOOL_APPROVAL,
    ON_TOOL_CALLED,
    ON_TOOL_FINISHED,
    ON_UNLOAD,
    AgentProfile,
    ExtensionMetadata,
    ImageContent,
    RegisteredAgent,
    RegisteredTool,
    RegistryEntry,
    TaskInfo,
    TextContent,
    ToolDefinition,
    ToolResult,
    ValidationResult,
)
from agent_extensions.extensions.registry import ExtensionRegistry, ToolOverrideTable
from agent_extensions.extensions.state import ExtensionStateStore
from agent_extensions.extensions.validation import validate_extension, validate_tool_definition
from agent_extensions.extensions.watcher import ExtensionWatcher

__all__ = [
    "ExtensionManager",
    "ExtensionRegistry",
    "ExtensionLoader",
    "ExtensionWatcher",
    "ExtensionContext",
    "ExtensionStateStore",
    "ExecutableTool",
    "LoadedModule",
    "ToolOverrideTable",
    "FoldStep",
    "fold_event",
    "merge_partial",
    "validate_extension",
    "validate_tool_definition",
    # Models
    "AgentProfile",
    "ExtensionMetadata",
    "ImageContent",
    "RegisteredAgent",
    "RegisteredTool",
    "RegistryEntry",
    "TaskInfo",
    "TextContent",
    "ToolDefinition",
    "ToolResult",
    "ValidationResult",
    # Events
    "AgentStartedEvent",
    "FileRef",
    "FilesAddedEvent",
    "FilesDroppedEvent",
    "ProjectInfo",
    "ProjectOpenedEvent",
    "PromptFinishedEvent",
    "PromptStartedEvent",
    "ResponseData",
    "ToolApprovalEvent",
    "ToolCalledEvent",
    "ToolFinishedEvent",
    # Hooks
    "ON_LOAD",
    "ON_UNLOAD",
    "ON_PROJECT_OPEN",
    "ON_TOOL_APPROVAL",
    "ON_TOOL_CALLED",
    "ON_TOOL_FINISHED",
    "ON_AGENT_STARTED",
    "ON_PROMPT_STARTED",
    "ON_PROMPT_FINISHED",
    "ON_FILES_ADDED",
    "ON_FILES_DROPPED",
    "ON_AGENT_PROFILE_UPDATED",
    # Errors
    "AbortedError",
    "ExtensionError",
    "HookError",
    "LoadError",
    "ProcessError",
    "SupplierError",
    "ValidationError",
]
