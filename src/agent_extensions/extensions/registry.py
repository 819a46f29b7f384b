"""
Extension registry - the catalog of live extensions and their scope.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from agent_extensions.extensions.models import ExtensionMetadata, RegistryEntry
from agent_extensions.logging import get_logger

logger = get_logger("extensions.registry")


def _scope_key(project_dir: str | Path | None) -> str | None:
    if project_dir is None or project_dir == "":
        return None
    return str(project_dir)


class ExtensionRegistry:
    """
    Maps module path to ``RegistryEntry``.

    Entries are never mutated in place; every change swaps in a new frozen
    entry. Re-registering a module path keeps the slot (and therefore the
    priority) of the entry it replaces, so a hot-reloaded file does not
    silently change who wins a tool-name collision.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._next_order = 0

    def register(
        self,
        extension: Any,
        metadata: ExtensionMetadata,
        module_path: str | Path,
        project_dir: str | Path | None = None,
        capabilities: Iterable[str] = (),
    ) -> RegistryEntry:
        """Store or replace the entry for ``module_path``."""
        key = str(module_path)
        if not key:
            raise ValueError("module_path must be a non-empty string")

        previous = self._entries.get(key)
        if previous is not None:
            order = previous.order
            logger.info("Replacing extension %s (%s)", metadata.name, key)
        else:
            order = self._next_order
            self._next_order += 1
            logger.info("Registering extension %s (%s)", metadata.name, key)

        entry = RegistryEntry(
            extension=extension,
            metadata=metadata,
            module_path=key,
            project_dir=_scope_key(project_dir),
            order=order,
            initialized=False,
            capabilities=frozenset(capabilities),
        )
        self._entries[key] = entry
        return entry

    def set_initialized(self, module_path: str | Path, initialized: bool) -> RegistryEntry | None:
        entry = self._entries.get(str(module_path))
        if entry is None:
            logger.warning("Cannot set initialized=%s for %s: not registered", initialized, module_path)
            return None
        updated = replace(entry, initialized=initialized)
        self._entries[entry.module_path] = updated
        return updated

    def unregister(self, module_path: str | Path) -> RegistryEntry | None:
        """Remove an entry. Unknown paths are a no-op."""
        entry = self._entries.pop(str(module_path), None)
        if entry is not None:
            logger.info("Unregistered extension %s (%s)", entry.name, entry.module_path)
        return entry

    def get(self, module_path: str | Path) -> RegistryEntry | None:
        return self._entries.get(str(module_path))

    def find_by_name(self, name: str, project_dir: str | Path | None = None) -> RegistryEntry | None:
        """Last-registered visible entry with the given metadata name."""
        scope = _scope_key(project_dir)
        found = None
        for entry in self._ordered():
            if entry.name == name and (scope is None or entry.visible_to(scope)):
                found = entry
        return found

    def list_for(self, project_dir: str | Path | None) -> list[RegistryEntry]:
        """Global entries plus entries bound to exactly ``project_dir``."""
        scope = _scope_key(project_dir)
        return [entry for entry in self._ordered() if entry.visible_to(scope)]

    def list_all(self) -> list[RegistryEntry]:
        return list(self._ordered())

    def under_directory(self, directory: str | Path) -> list[RegistryEntry]:
        """Entries whose module lives inside ``directory``."""
        root = Path(directory)
        return [e for e in self._ordered() if Path(e.module_path).is_relative_to(root)]

    def clear(self) -> None:
        self._entries.clear()

    def _ordered(self) -> Iterator[RegistryEntry]:
        return iter(sorted(self._entries.values(), key=lambda e: e.order))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, module_path: object) -> bool:
        return str(module_path) in self._entries


# ---------------------------------------------------------------------------
# Tool overrides
# ---------------------------------------------------------------------------

BUILTIN_OWNER = "builtin"


@dataclass(frozen=True)
class ToolClaim:
    """Who currently owns a tool name, and with what priority."""

    extension_name: str
    priority: tuple[int, int]


class ToolOverrideTable:
    """
    Explicit name -> owner table for tool collisions.

    Priority is ``(registration order, supplier index)``; higher wins.
    Built-in tools are seeded below every extension so an extension may
    shadow a built-in by reusing its name.
    """

    def __init__(self, builtin_names: Iterable[str] = ()) -> None:
        self._claims: dict[str, ToolClaim] = {}
        for index, name in enumerate(builtin_names):
            self._claims[name] = ToolClaim(BUILTIN_OWNER, (-1, index))

    def claim(self, name: str, extension_name: str, priority: tuple[int, int]) -> ToolClaim | None:
        """
        Offer ``extension_name`` as owner of ``name``.

        Returns the claim that lost (the shadowed owner or the rejected
        offer), or ``None`` when there was no collision.
        """
        offer = ToolClaim(extension_name, priority)
        current = self._claims.get(name)
        if current is None:
            self._claims[name] = offer
            return None
        if priority > current.priority:
            self._claims[name] = offer
            return current
        return offer

    def owner(self, name: str) -> ToolClaim | None:
        return self._claims.get(name)

    def owns(self, name: str, priority: tuple[int, int]) -> bool:
        current = self._claims.get(name)
        return current is not None and current.priority == priority

    def __len__(self) -> int:
        return len(self._claims)
