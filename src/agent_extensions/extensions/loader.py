"""
Extension loader - discovery and import of extension modules.

A directory may contain single-file extensions (``my_ext.py``) and package
extensions (``my_ext/__init__.py``). Installed distributions can also
publish extensions through an entry-point group.

Each module exposes ``extension`` (a class, a no-argument factory function,
or a ready instance) and optionally a ``metadata`` mapping.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import inspect
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from importlib.metadata import EntryPoint, entry_points
from pathlib import Path
from types import ModuleType
from typing import Any

from agent_extensions.extensions.errors import LoadError
from agent_extensions.extensions.models import ExtensionMetadata
from agent_extensions.logging import get_logger

logger = get_logger("extensions.loader")

EXPORT_NAME = "extension"
METADATA_NAME = "metadata"


@dataclass
class LoadedModule:
    """An instantiated extension and the metadata it declared."""

    extension: Any
    metadata: ExtensionMetadata
    module_path: str


def derive_extension_name(path: Path) -> str:
    """File stem, or the package directory name for ``__init__.py``."""
    if path.name == "__init__.py":
        return path.parent.name
    return path.stem


class ExtensionLoader:
    """Finds extension modules and turns them into live instances."""

    def __init__(self, entry_point_group: str | None = None) -> None:
        self.entry_point_group = entry_point_group

    def discover(self, directory: str | Path) -> list[Path]:
        """Extension files in ``directory``, sorted by name."""
        directory = Path(directory)
        found: list[Path] = []
        if not directory.is_dir():
            logger.debug("Directory does not exist: %s", directory)
            return found

        for child in directory.iterdir():
            if child.name.startswith(("_", ".")):
                continue
            if child.is_dir():
                init_file = child / "__init__.py"
                if init_file.is_file():
                    found.append(init_file)
            elif child.is_file() and child.suffix == ".py":
                found.append(child)

        found.sort(key=derive_extension_name)
        if found:
            logger.info(
                "Discovered %d extension(s) in %s: %s",
                len(found),
                directory,
                ", ".join(derive_extension_name(p) for p in found),
            )
        return found

    def discover_entry_points(self) -> list[EntryPoint]:
        if not self.entry_point_group:
            return []
        try:
            eps = list(entry_points(group=self.entry_point_group))
        except Exception as e:
            logger.debug("Entry point discovery failed: %s", e)
            return []
        for ep in eps:
            logger.debug("Discovered entry point extension: %s", ep.name)
        return eps

    def import_module(self, path: str | Path) -> ModuleType:
        """Import (or re-import) a module from a file path."""
        path = Path(path)
        digest = hashlib.sha1(str(path.resolve()).encode()).hexdigest()[:12]
        module_name = f"agent_extensions_ext_{derive_extension_name(path)}_{digest}"

        # Hot reload must execute the current file contents.
        for loaded_name in [n for n in sys.modules if n == module_name or n.startswith(module_name + ".")]:
            del sys.modules[loaded_name]
        importlib.invalidate_caches()

        search_locations = [str(path.parent)] if path.name == "__init__.py" else None
        spec = importlib.util.spec_from_file_location(
            module_name, path, submodule_search_locations=search_locations
        )
        if spec is None or spec.loader is None:
            raise LoadError(f"Cannot load module from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoadError(f"Failed to import {path}: {e}") from e
        return module

    def load(self, path: str | Path) -> LoadedModule | None:
        """Import and instantiate the extension at ``path``; None on failure."""
        path = Path(path)
        try:
            module = self.import_module(path)
            return self._instantiate(module, str(path), derive_extension_name(path))
        except LoadError as e:
            logger.error("Failed to load extension from %s: %s", path, e)
            return None
        except Exception as e:
            logger.error("Failed to load extension from %s: %s", path, e, exc_info=True)
            return None

    def load_entry_point(self, ep: EntryPoint) -> LoadedModule | None:
        origin = f"entrypoint:{ep.value}"
        try:
            target = ep.load()
            if isinstance(target, ModuleType):
                return self._instantiate(target, origin, ep.name)
            return self._from_export(target, None, origin, ep.name)
        except Exception as e:
            logger.error("Failed to load entry point extension %s: %s", ep.name, e)
            return None

    def _instantiate(self, module: ModuleType, origin: str, default_name: str) -> LoadedModule:
        export = getattr(module, EXPORT_NAME, None)
        if export is None:
            raise LoadError(f"Extension module {origin} has no '{EXPORT_NAME}' export")
        return self._from_export(export, getattr(module, METADATA_NAME, None), origin, default_name)

    def _from_export(
        self,
        export: Any,
        module_metadata: Any,
        origin: str,
        default_name: str,
    ) -> LoadedModule:
        raw_metadata = module_metadata
        if raw_metadata is None:
            raw_metadata = getattr(export, METADATA_NAME, None)

        try:
            if inspect.isclass(export):
                instance = export()
            elif inspect.isfunction(export):
                instance = export()
            else:
                instance = export
        except Exception as e:
            raise LoadError(f"Failed to instantiate extension from {origin}: {e}") from e

        if isinstance(raw_metadata, ExtensionMetadata):
            metadata = raw_metadata
        elif isinstance(raw_metadata, Mapping):
            metadata = ExtensionMetadata.from_mapping(raw_metadata, default_name=default_name)
        else:
            metadata = ExtensionMetadata(name=default_name)
            logger.info("Extension %s is missing metadata. Generated name: %s", origin, default_name)

        return LoadedModule(extension=instance, metadata=metadata, module_path=origin)
