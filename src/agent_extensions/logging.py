"""
Loggers for the extension runtime.

Runtime diagnostics live under ``agent_extensions.<module>``. Messages that
extensions write through ``ExtensionContext.log`` go to
``agent_extensions.ext.<id>`` so a host can quiet noisy extensions without
losing its own supervision logs.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_root_logger = logging.getLogger("agent_extensions")
_extension_logger = logging.getLogger("agent_extensions.ext")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _as_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "INFO",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
    extension_level: str | int | None = None,
) -> None:
    """
    Attach handlers to the runtime's root logger, replacing earlier ones.

    Args:
        level: Threshold for runtime diagnostics, as a name or int
        format: Record format; defaults to ``DEFAULT_FORMAT``
        stream: Output stream (defaults to stderr)
        file: Optional log file, written alongside the stream
        extension_level: Separate threshold for extension-authored messages;
            ``None`` lets them follow ``level``

    Example:
        setup_logging("INFO", extension_level="WARNING")
    """
    level = _as_level(level)
    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    formatter = logging.Formatter(format or DEFAULT_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if file:
        handlers.append(logging.FileHandler(file))
    for handler in handlers:
        handler.setFormatter(formatter)
        _root_logger.addHandler(handler)

    set_extension_level(extension_level)


def set_extension_level(level: str | int | None) -> None:
    """Threshold for every ``agent_extensions.ext.*`` logger; None inherits."""
    _extension_logger.setLevel(logging.NOTSET if level is None else _as_level(level))


def get_logger(name: str) -> logging.Logger:
    """Child logger for a runtime module, e.g. ``"runtime.jobs"``."""
    if name.startswith("agent_extensions."):
        return logging.getLogger(name)
    return logging.getLogger(f"agent_extensions.{name}")


def get_extension_logger(extension_id: str) -> logging.Logger:
    """Logger used for messages an extension emits through its context."""
    safe_id = extension_id.replace(".", "_") or "unknown"
    return _extension_logger.getChild(safe_id)
