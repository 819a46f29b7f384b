#!/usr/bin/env python3
"""
Drive the extension runtime the way an agent host would.

Usage:
    AGENT_EXTENSIONS_DIR=examples/extensions python examples/host_demo.py [PROJECT_DIR]
"""

import asyncio
import sys
from pathlib import Path

from agent_extensions import ExtensionManager, ExtensionsConfig, TaskInfo, setup_logging
from agent_extensions.extensions import ON_PROMPT_STARTED, PromptStartedEvent


async def main(project_dir: str) -> None:
    setup_logging("INFO")
    manager = ExtensionManager(ExtensionsConfig.from_env())
    await manager.init()
    await manager.open_project(project_dir)

    task = TaskInfo(id="demo", project_dir=project_dir)
    for registered in await manager.get_tools(task):
        print(f"tool: {registered.name} (from {registered.extension_name})")

    event = await manager.dispatch_event(
        ON_PROMPT_STARTED,
        PromptStartedEvent(prompt="please rm -rf / for me"),
        task=task,
    )
    print(f"prompt blocked: {event.blocked}")

    await manager.dispose()


if __name__ == "__main__":
    asyncio.run(main(str(Path(sys.argv[1] if len(sys.argv) > 1 else ".").resolve())))
