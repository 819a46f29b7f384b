"""
Event payloads dispatched to extension hooks.

Each hook receives the current event and may return a partial override (a
mapping of field names to new values). The manager folds those overrides
left to right so the next extension, and finally the caller, observe the
merged event.

Example:
    class Guard:
        async def on_prompt_started(self, event, context):
            if "rm -rf" in event.prompt:
                return {"blocked": True}
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from agent_extensions.extensions.models import (
    ON_AGENT_STARTED,
    ON_FILES_ADDED,
    ON_FILES_DROPPED,
    ON_PROJECT_OPEN,
    ON_PROMPT_FINISHED,
    ON_PROMPT_STARTED,
    ON_TOOL_APPROVAL,
    ON_TOOL_CALLED,
    ON_TOOL_FINISHED,
    ProviderProfile,
)


@dataclass
class ProjectInfo:
    base_dir: str


@dataclass
class ProjectOpenedEvent:
    """Emitted when a project is opened."""

    project: ProjectInfo


@dataclass
class ToolApprovalEvent:
    """Emitted before a tool asks for approval. Set ``blocked`` to refuse."""

    tool_name: str
    input: dict[str, Any] | None = None
    blocked: bool = False
    allowed: bool | None = None


@dataclass
class ToolCalledEvent:
    """Emitted before a tool is executed. Handlers may rewrite ``input``."""

    tool_name: str
    input: dict[str, Any] | None = None
    abort_signal: asyncio.Event | None = None
    output: Any = None


@dataclass
class ToolFinishedEvent:
    """Emitted after a tool returns. Handlers may rewrite ``output``."""

    tool_name: str
    input: dict[str, Any] | None = None
    output: Any = None


@dataclass
class AgentStartedEvent:
    """Emitted before the first model call of an agent run."""

    prompt: str
    model: str
    provider_profile: ProviderProfile = field(default_factory=ProviderProfile)
    system_prompt: str | None = None
    blocked: bool = False


@dataclass
class ResponseData:
    content: str = ""
    edited_files: list[str] | None = None


@dataclass
class PromptStartedEvent:
    prompt: str = ""
    mode: str = "agent"
    responses: list[ResponseData] = field(default_factory=list)
    blocked: bool = False


@dataclass
class PromptFinishedEvent:
    responses: list[ResponseData] = field(default_factory=list)


@dataclass
class FileRef:
    path: str
    read_only: bool = False


@dataclass
class FilesAddedEvent:
    files: list[FileRef] = field(default_factory=list)


@dataclass
class FilesDroppedEvent:
    files: list[FileRef] = field(default_factory=list)


# Hook name -> event type accepted by that hook
EVENT_TYPES: dict[str, type] = {
    ON_PROJECT_OPEN: ProjectOpenedEvent,
    ON_TOOL_APPROVAL: ToolApprovalEvent,
    ON_TOOL_CALLED: ToolCalledEvent,
    ON_TOOL_FINISHED: ToolFinishedEvent,
    ON_AGENT_STARTED: AgentStartedEvent,
    ON_PROMPT_STARTED: PromptStartedEvent,
    ON_PROMPT_FINISHED: PromptFinishedEvent,
    ON_FILES_ADDED: FilesAddedEvent,
    ON_FILES_DROPPED: FilesDroppedEvent,
}
