"""
Error taxonomy for the extension runtime.

Most of these never escape the manager: they label what went wrong in a
log record while the caller receives a safe default. ``AbortedError`` and
``ProcessError`` are raised by the low-level worker wrapper so callers can
tell cancellation apart from failure.
"""

from __future__ import annotations


class ExtensionError(Exception):
    """Base class for extension runtime errors."""

    def __init__(self, message: str, extension_name: str = "") -> None:
        super().__init__(message)
        self.extension_name = extension_name


class ValidationError(ExtensionError):
    """A tool, agent profile or extension shape violates the contract."""

    def __init__(self, message: str, errors: list[str] | None = None, extension_name: str = "") -> None:
        super().__init__(message, extension_name)
        self.errors = list(errors or [])


class LoadError(ExtensionError):
    """An extension module failed to import or instantiate."""


class HookError(ExtensionError):
    """An extension's event handler raised."""

    def __init__(self, message: str, hook: str, extension_name: str = "") -> None:
        super().__init__(message, extension_name)
        self.hook = hook


class SupplierError(ExtensionError):
    """A tool or agent supplier raised or returned a non-sequence."""


class ProcessError(ExtensionError):
    """An external worker failed to spawn or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AbortedError(ExtensionError):
    """Cancellation was observed while waiting on an external worker."""

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message)
