"""
Event folding - the reducer behind event dispatch.

``fold_event`` applies a sequence of steps left to right. Each step sees the
event produced by the previous one and may return a partial override. A step
that raises is logged and skipped; the event it was given passes through
unchanged to the next step.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, TypeVar

from agent_extensions.extensions.errors import HookError
from agent_extensions.logging import get_logger

logger = get_logger("extensions.dispatch")

E = TypeVar("E")


@dataclass(frozen=True)
class FoldStep:
    """One participant in a fold: ``handler(event)`` -> partial | None."""

    extension_name: str
    handler: Callable[[Any], Any]


def merge_partial(event: E, partial: Any, source: str = "") -> E:
    """
    Shallow-merge ``partial`` over ``event``.

    ``partial`` may be a mapping or an instance of the event's own dataclass.
    Keys that are not fields of the event are ignored.
    """
    if is_dataclass(partial) and not isinstance(partial, type) and type(partial) is type(event):
        partial = {f.name: getattr(partial, f.name) for f in fields(partial)}

    if not isinstance(partial, Mapping):
        logger.debug(
            "Ignoring non-mapping result %s from extension '%s'",
            type(partial).__name__,
            source,
        )
        return event

    if is_dataclass(event) and not isinstance(event, type):
        names = {f.name for f in fields(event)}
        known = {k: v for k, v in partial.items() if k in names}
        unknown = sorted(k for k in partial if k not in names)
        if unknown:
            logger.debug(
                "Ignoring unknown fields %s from extension '%s' for %s",
                unknown,
                source,
                type(event).__name__,
            )
        return replace(event, **known) if known else event

    if isinstance(event, Mapping):
        return {**event, **partial}  # type: ignore[return-value]

    return event


async def fold_event(
    event: E,
    steps: Iterable[FoldStep],
    hook: str = "",
    stop_when_blocked: bool = True,
    errors: list[HookError] | None = None,
) -> E:
    """
    Run ``steps`` in order, threading the event through each.

    Args:
        event: Initial event
        steps: Participants in dispatch order
        hook: Hook name, for diagnostics
        stop_when_blocked: Stop once the event's ``blocked`` field is True
        errors: Optional list that collects a ``HookError`` per failed step

    Returns:
        The folded event
    """
    current = event
    for step in steps:
        try:
            result = step.handler(current)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(
                "Error in '%s' handler for extension '%s': %s",
                hook,
                step.extension_name,
                e,
                exc_info=True,
            )
            if errors is not None:
                errors.append(HookError(str(e), hook=hook, extension_name=step.extension_name))
            continue

        if result is None:
            continue

        current = merge_partial(current, result, source=step.extension_name)

        if stop_when_blocked and getattr(current, "blocked", False) is True:
            logger.info("Event '%s' blocked by extension '%s'", hook, step.extension_name)
            break

    return current
