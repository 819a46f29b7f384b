"""Tests for extension discovery and import."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from agent_extensions.extensions.errors import LoadError
from agent_extensions.extensions.loader import ExtensionLoader, derive_extension_name


@pytest.fixture
def loader() -> ExtensionLoader:
    return ExtensionLoader()


class TestDiscover:
    def test_files_and_packages_sorted(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        (tmp_path / "zeta.py").write_text("extension = object()\n")
        (tmp_path / "alpha.py").write_text("extension = object()\n")
        package = tmp_path / "middle"
        package.mkdir()
        (package / "__init__.py").write_text("extension = object()\n")

        found = loader.discover(tmp_path)

        assert [derive_extension_name(p) for p in found] == ["alpha", "middle", "zeta"]

    def test_skips_private_and_other_files(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        (tmp_path / "_helpers.py").write_text("")
        (tmp_path / "notes.txt").write_text("")
        (tmp_path / "__pycache__").mkdir()
        (tmp_path / "no_init").mkdir()
        (tmp_path / "real.py").write_text("")

        assert [p.name for p in loader.discover(tmp_path)] == ["real.py"]

    def test_missing_directory(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        assert loader.discover(tmp_path / "missing") == []


class TestLoad:
    def test_class_export_with_metadata(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "greeter.py"
        path.write_text(
            'metadata = {"name": "greeter", "version": "2.0.0", "author": "me"}\n'
            "class Greeter:\n"
            "    pass\n"
            "extension = Greeter\n"
        )

        loaded = loader.load(path)

        assert type(loaded.extension).__name__ == "Greeter"
        assert loaded.metadata.name == "greeter"
        assert loaded.metadata.version == "2.0.0"
        assert loaded.module_path == str(path)

    def test_factory_function(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "factory.py"
        path.write_text("def extension():\n    return {'made': True}\n")

        loaded = loader.load(path)

        assert loaded.extension == {"made": True}

    def test_metadata_derived_from_file_name(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "nameless.py"
        path.write_text("extension = object()\n")

        loaded = loader.load(path)

        assert loaded.metadata.name == "nameless"
        assert loaded.metadata.version == "1.0.0"

    def test_package_extension(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        package = tmp_path / "pkg_ext"
        package.mkdir()
        (package / "helpers.py").write_text("VALUE = 7\n")
        (package / "__init__.py").write_text(
            "from .helpers import VALUE\n"
            "class Ext:\n"
            "    value = VALUE\n"
            "extension = Ext\n"
        )

        loaded = loader.load(package / "__init__.py")

        assert loaded.metadata.name == "pkg_ext"
        assert loaded.extension.value == 7

    def test_class_metadata_attribute(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "attr.py"
        path.write_text("class Ext:\n    metadata = {'name': 'from-class'}\nextension = Ext\n")
        assert loader.load(path).metadata.name == "from-class"

    def test_missing_export(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "empty.py"
        path.write_text("x = 1\n")
        assert loader.load(path) is None

    def test_constructor_failure(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "angry.py"
        path.write_text("class Angry:\n    def __init__(self):\n        raise ValueError('no')\nextension = Angry\n")
        assert loader.load(path) is None

    def test_import_error_raises_load_error(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "broken.py"
        path.write_text("import does_not_exist_anywhere\n")
        with pytest.raises(LoadError):
            loader.import_module(path)

    def test_reimport_sees_new_contents(self, loader: ExtensionLoader, tmp_path: Path) -> None:
        path = tmp_path / "changing.py"
        path.write_text("extension = 'one'\n")
        assert loader.load(path).extension == "one"

        path.write_text("extension = 'second value'\n")
        assert loader.load(path).extension == "second value"


class TestEntryPoints:
    def test_no_group(self, loader: ExtensionLoader) -> None:
        assert loader.discover_entry_points() == []

    def test_load_entry_point_object(self) -> None:
        class Ext:
            metadata = {"name": "installed"}

        ep = SimpleNamespace(name="installed", value="pkg.mod:Ext", load=lambda: Ext)
        loaded = ExtensionLoader("group").load_entry_point(ep)

        assert isinstance(loaded.extension, Ext)
        assert loaded.metadata.name == "installed"
        assert loaded.module_path == "entrypoint:pkg.mod:Ext"

    def test_discover_entry_points(self) -> None:
        ep = SimpleNamespace(name="x", value="x:y", load=lambda: object)
        with patch("agent_extensions.extensions.loader.entry_points", return_value=[ep]) as mocked:
            assert ExtensionLoader("my.group").discover_entry_points() == [ep]
        mocked.assert_called_once_with(group="my.group")
