"""Tests for event folding."""

from __future__ import annotations

import logging

import pytest

from agent_extensions.extensions.dispatch import FoldStep, fold_event, merge_partial
from agent_extensions.extensions.errors import HookError
from agent_extensions.extensions.events import PromptStartedEvent, ToolCalledEvent


class TestMergePartial:
    def test_mapping_partial(self) -> None:
        event = ToolCalledEvent(tool_name="bash", input={"cmd": "ls"})
        merged = merge_partial(event, {"input": {"cmd": "ls -la"}})
        assert merged.input == {"cmd": "ls -la"}
        assert merged.tool_name == "bash"
        assert event.input == {"cmd": "ls"}

    def test_same_type_instance(self) -> None:
        event = PromptStartedEvent(prompt="hi")
        merged = merge_partial(event, PromptStartedEvent(prompt="hello", mode="ask"))
        assert merged.prompt == "hello"
        assert merged.mode == "ask"

    def test_unknown_keys_ignored(self) -> None:
        event = PromptStartedEvent(prompt="hi")
        merged = merge_partial(event, {"nonsense": 1, "prompt": "yo"})
        assert merged.prompt == "yo"
        assert not hasattr(merged, "nonsense")

    def test_non_mapping_ignored(self) -> None:
        event = PromptStartedEvent(prompt="hi")
        assert merge_partial(event, 42) is event

    def test_mapping_event(self) -> None:
        assert merge_partial({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}


class TestFoldEvent:
    @pytest.mark.asyncio
    async def test_failing_step_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        seen: list[str] = []

        def first(event):
            seen.append(event.prompt)
            return {"prompt": event.prompt + " A"}

        async def second(event):
            seen.append(event.prompt)
            raise RuntimeError("second broke")

        async def third(event):
            seen.append(event.prompt)
            return {"prompt": event.prompt + " C"}

        errors: list[HookError] = []
        with caplog.at_level(logging.ERROR, logger="agent_extensions"):
            result = await fold_event(
                PromptStartedEvent(prompt="start"),
                [FoldStep("one", first), FoldStep("two", second), FoldStep("three", third)],
                hook="on_prompt_started",
                errors=errors,
            )

        assert result.prompt == "start A C"
        assert seen == ["start", "start A", "start A"]
        assert len(errors) == 1
        assert errors[0].extension_name == "two"
        assert errors[0].hook == "on_prompt_started"
        assert any("two" in r.getMessage() and "second broke" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_none_leaves_event_unchanged(self) -> None:
        event = PromptStartedEvent(prompt="same")
        result = await fold_event(event, [FoldStep("a", lambda e: None)])
        assert result is event

    @pytest.mark.asyncio
    async def test_blocked_stops_dispatch(self) -> None:
        calls: list[str] = []

        def blocker(event):
            calls.append("blocker")
            return {"blocked": True}

        def after(event):
            calls.append("after")
            return {"prompt": "changed"}

        result = await fold_event(
            PromptStartedEvent(prompt="x"),
            [FoldStep("blocker", blocker), FoldStep("after", after)],
        )
        assert result.blocked is True
        assert result.prompt == "x"
        assert calls == ["blocker"]

    @pytest.mark.asyncio
    async def test_blocked_continues_when_disabled(self) -> None:
        result = await fold_event(
            PromptStartedEvent(prompt="x"),
            [FoldStep("a", lambda e: {"blocked": True}), FoldStep("b", lambda e: {"prompt": "y"})],
            stop_when_blocked=False,
        )
        assert result.blocked is True
        assert result.prompt == "y"

    @pytest.mark.asyncio
    async def test_no_steps(self) -> None:
        event = PromptStartedEvent(prompt="x")
        assert await fold_event(event, []) is event
