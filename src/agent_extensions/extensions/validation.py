"""
Structural validation of what extensions declare.

Validators never raise. They report every problem they find in one pass so
an extension author sees the full list at once.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, TypeAdapter

from agent_extensions.extensions.models import (
    CAPABILITY_TAGS,
    HOOK_NAMES,
    ExtensionMetadata,
    ValidationResult,
)

TOOL_NAME_PATTERN = re.compile(r"[a-z][a-z0-9_-]*")

# camelCase spellings an author might carry over from other hosts
_CAMEL_HOOKS = {
    "".join(part.capitalize() if i else part for i, part in enumerate(name.split("_"))): name
    for name in HOOK_NAMES
}


def _read(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def is_input_schema(schema: Any) -> bool:
    """True for a pydantic model class or a ``TypeAdapter``."""
    if isinstance(schema, TypeAdapter):
        return True
    return inspect.isclass(schema) and issubclass(schema, BaseModel)


def is_valid_tool_name(name: Any) -> bool:
    return isinstance(name, str) and TOOL_NAME_PATTERN.fullmatch(name) is not None


def validate_tool_definition(tool: Any) -> ValidationResult:
    """
    Check a tool against the tool contract.

    A tool may be a ``ToolDefinition``, any object exposing the same
    attributes, or a mapping with the same keys. Each of the four rules is
    checked independently. An exception raised while reading a field is
    reported as a single ``Validation error`` entry.
    """
    errors: list[str] = []

    try:
        name = _read(tool, "name")
        if not name or not isinstance(name, str):
            errors.append("Tool name must be a non-empty string")
        elif not is_valid_tool_name(name):
            errors.append(
                f"Tool name '{name}' must start with a lowercase letter and contain only "
                "lowercase letters, digits, '-' or '_' (e.g. 'run-linter', 'run_linter')"
            )

        description = _read(tool, "description")
        if not isinstance(description, str) or not description.strip():
            errors.append("Tool description must be a non-empty string")

        if not is_input_schema(_read(tool, "input_schema")):
            errors.append("Tool input_schema must be a pydantic model class or TypeAdapter")

        if not callable(_read(tool, "execute")):
            errors.append("Tool execute must be callable")
    except Exception as e:
        errors.append(f"Validation error: {e}")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_agent_profile(agent: Any) -> ValidationResult:
    """An extension-supplied agent profile needs at least an id and a name."""
    errors: list[str] = []
    try:
        if not _read(agent, "id"):
            errors.append("Agent profile id must be a non-empty string")
        if not _read(agent, "name"):
            errors.append("Agent profile name must be a non-empty string")
    except Exception as e:
        errors.append(f"Validation error: {e}")
    return ValidationResult(is_valid=not errors, errors=errors)


@dataclass
class ExtensionShape:
    """Outcome of checking a loaded extension instance."""

    result: ValidationResult
    capabilities: frozenset[str] = frozenset()
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.result.is_valid


def validate_extension(instance: Any, metadata: ExtensionMetadata | None = None) -> ExtensionShape:
    """
    Check an extension instance against the capability-set contract.

    No hook is mandatory. Every hook the instance does define must be
    callable. The returned capability set is what the manager dispatches on,
    so attribute lookups at dispatch time only ever hit vetted hooks.
    """
    errors: list[str] = []
    warnings: list[str] = []
    capabilities: set[str] = set()

    if instance is None:
        errors.append("Extension instance is None")
        return ExtensionShape(ValidationResult(False, errors))
    if inspect.isclass(instance) or inspect.ismodule(instance):
        errors.append(f"Extension must be an instance, got {type(instance).__name__}")
        return ExtensionShape(ValidationResult(False, errors))

    try:
        for hook in sorted(HOOK_NAMES):
            handler = getattr(instance, hook, None)
            if handler is None:
                continue
            if callable(handler):
                capabilities.add(hook)
            else:
                errors.append(f"Hook '{hook}' must be callable, got {type(handler).__name__}")

        for camel, snake in _CAMEL_HOOKS.items():
            if camel != snake and getattr(instance, camel, None) is not None:
                warnings.append(f"Attribute '{camel}' is ignored; did you mean '{snake}'?")
    except Exception as e:
        errors.append(f"Validation error: {e}")

    if metadata is not None:
        if not metadata.name:
            errors.append("Extension metadata name must be a non-empty string")
        unknown = [tag for tag in metadata.capabilities if tag not in CAPABILITY_TAGS]
        if unknown:
            warnings.append(f"Unknown capability tags: {', '.join(unknown)}")

    return ExtensionShape(
        result=ValidationResult(is_valid=not errors, errors=errors),
        capabilities=frozenset(capabilities),
        warnings=warnings,
    )
