"""Tests for the example extensions shipped in examples/extensions."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_extensions.bundled.code_index import CodeIndexExtension
from agent_extensions.config import ExtensionsConfig
from agent_extensions.extensions.events import PromptStartedEvent, ToolApprovalEvent
from agent_extensions.extensions.loader import ExtensionLoader
from agent_extensions.extensions.manager import ExtensionManager
from agent_extensions.extensions.models import ON_PROMPT_STARTED, ON_TOOL_APPROVAL

EXAMPLES_DIR = Path(__file__).parent.parent / "examples" / "extensions"


class TestExampleExtensions:
    def test_examples_load(self) -> None:
        loader = ExtensionLoader()
        loaded = {m.metadata.name: m for m in map(loader.load, loader.discover(EXAMPLES_DIR))}

        assert set(loaded) == {"code-index", "prompt-guard"}
        assert isinstance(loaded["code-index"].extension, CodeIndexExtension)

    @pytest.mark.asyncio
    async def test_prompt_guard(self) -> None:
        manager = ExtensionManager(ExtensionsConfig(global_dir=EXAMPLES_DIR, entry_point_group=None))
        await manager.load_extension(EXAMPLES_DIR / "prompt_guard.py")

        blocked = await manager.dispatch_event(ON_PROMPT_STARTED, PromptStartedEvent(prompt="rm -rf / now"))
        allowed = await manager.dispatch_event(ON_PROMPT_STARTED, PromptStartedEvent(prompt="list files"))
        approval = await manager.dispatch_event(
            ON_TOOL_APPROVAL, ToolApprovalEvent(tool_name="bash", input={"command": "DROP DATABASE prod"})
        )

        assert blocked.blocked
        assert not allowed.blocked
        assert approval.blocked and approval.allowed is False
        assert manager.state_store.get_state("prompt-guard", "blocked") == 1
