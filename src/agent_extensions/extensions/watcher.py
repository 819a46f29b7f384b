"""
Hot-reload watcher for extension directories.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchfiles import awatch

from agent_extensions.logging import get_logger

logger = get_logger("extensions.watcher")

ChangeCallback = Callable[[set[Path]], Awaitable[None] | None]


class ExtensionWatcher:
    """
    Watches one directory and invokes ``on_change`` with the changed
    extension files, debounced.

    Example:
        watcher = ExtensionWatcher(ext_dir, on_change=reload)
        await watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: ChangeCallback,
        debounce_ms: int = 1000,
        force_polling: bool | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.on_change = on_change
        self.debounce_ms = debounce_ms
        self.force_polling = force_polling

        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    async def start(self) -> None:
        if self._task is not None:
            return  # Already watching

        self.directory.mkdir(parents=True, exist_ok=True)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop())
        logger.info("Watching extensions in %s", self.directory)

    async def stop(self) -> None:
        if self._task is None:
            return

        if self._stop_event:
            self._stop_event.set()

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        self._task = None
        self._stop_event = None
        logger.info("Stopped watching %s", self.directory)

    @property
    def is_watching(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _watch_loop(self) -> None:
        try:
            async for changes in awatch(
                self.directory,
                debounce=self.debounce_ms,
                stop_event=self._stop_event,
                force_polling=self.force_polling,
            ):
                changed = {Path(p) for _, p in changes if _is_extension_file(Path(p))}
                if not changed:
                    continue
                logger.debug("Extension changes in %s: %s", self.directory, sorted(map(str, changed)))
                try:
                    result = self.on_change(changed)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error("Reload after change in %s failed: %s", self.directory, e, exc_info=True)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Watcher error for directory %s: %s", self.directory, e)


def _is_extension_file(path: Path) -> bool:
    return path.suffix == ".py" and "__pycache__" not in path.parts
