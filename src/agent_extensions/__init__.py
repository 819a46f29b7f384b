"""
Agent Extensions - a plugin runtime for coding agents.

Extensions are Python modules that contribute tools, agent profiles and
event hooks. They are loaded globally or per project, isolated from each
other, and hot-reloaded on change.

Example:
    from agent_extensions import ExtensionManager, ExtensionsConfig, TaskInfo

    manager = ExtensionManager(ExtensionsConfig.from_env())
    await manager.init()
    await manager.open_project("/path/to/project")

    task = TaskInfo(id="t1", project_dir="/path/to/project")
    toolset = await manager.create_toolset(task)
    result = await toolset["semantic-search"].run({"query": "retry policy"})
"""

from agent_extensions.config import ExtensionsConfig
from agent_extensions.extensions import (
    AgentProfile,
    ExecutableTool,
    ExtensionContext,
    ExtensionError,
    ExtensionManager,
    ExtensionMetadata,
    ExtensionRegistry,
    ExtensionStateStore,
    TaskInfo,
    ToolDefinition,
    ToolResult,
)
from agent_extensions.logging import get_logger, setup_logging
from agent_extensions.runtime import JobController, JobOutcome, JobState, ProcessTable, WorkerCommand, run_worker

__version__ = "0.1.0"

__all__ = [
    "ExtensionsConfig",
    "ExtensionManager",
    "ExtensionRegistry",
    "ExtensionContext",
    "ExtensionStateStore",
    "ExtensionMetadata",
    "ExtensionError",
    "ExecutableTool",
    "AgentProfile",
    "TaskInfo",
    "ToolDefinition",
    "ToolResult",
    "JobController",
    "JobOutcome",
    "JobState",
    "ProcessTable",
    "WorkerCommand",
    "run_worker",
    "get_logger",
    "setup_logging",
]
