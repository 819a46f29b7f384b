"""
External worker processes with cooperative cancellation.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from agent_extensions.extensions.errors import AbortedError, ProcessError
from agent_extensions.logging import get_logger

logger = get_logger("runtime.process")

DEFAULT_GRACE_PERIOD = 5.0


@dataclass
class WorkerCommand:
    """A program to spawn, with arguments, working directory and env overrides."""

    program: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def build_env(self) -> dict[str, str]:
        full_env = os.environ.copy()
        if self.env:
            full_env.update(self.env)
        return full_env


@dataclass
class WorkerResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


Spawner = Callable[[WorkerCommand], Awaitable[asyncio.subprocess.Process]]


async def spawn_worker(command: WorkerCommand) -> asyncio.subprocess.Process:
    """Spawn ``command`` with stdin closed and stdout/stderr captured."""
    return await asyncio.create_subprocess_exec(
        command.program,
        *command.args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=command.cwd,
        env=command.build_env(),
    )


async def terminate_process(
    process: asyncio.subprocess.Process,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> None:
    """SIGTERM, then SIGKILL if the process outlives ``grace_period``."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_period)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessTable:
    """
    Live worker processes keyed by resource (usually a project directory).

    Lets an owner terminate everything it started, e.g. on unload.
    """

    def __init__(self) -> None:
        self._processes: dict[str, asyncio.subprocess.Process] = {}

    def track(self, key: str, process: asyncio.subprocess.Process) -> None:
        self._processes[key] = process

    def release(self, key: str, process: asyncio.subprocess.Process) -> None:
        """Forget ``process`` if it is still the one tracked under ``key``."""
        if self._processes.get(key) is process:
            del self._processes[key]

    def get(self, key: str) -> asyncio.subprocess.Process | None:
        return self._processes.get(key)

    def terminate(self, key: str) -> bool:
        process = self._processes.pop(key, None)
        if process is None:
            return False
        _send_terminate(process)
        return True

    def terminate_all(self) -> int:
        count = 0
        for key in list(self._processes):
            if self.terminate(key):
                count += 1
        return count

    def __contains__(self, key: object) -> bool:
        return key in self._processes

    def __len__(self) -> int:
        return len(self._processes)


def _send_terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        pass


async def run_worker(
    command: WorkerCommand,
    abort_signal: asyncio.Event | None = None,
    tracker: ProcessTable | None = None,
    key: str | None = None,
    timeout: float | None = None,
    check: bool = False,
    spawner: Spawner = spawn_worker,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> WorkerResult:
    """
    Run a worker to completion, honouring ``abort_signal``.

    Natural exit and abort race; whichever is observed first decides the
    result. The tracker entry is cleared exactly once either way.

    Raises:
        AbortedError: ``abort_signal`` was set before the worker exited
        ProcessError: spawn failed, the timeout expired, or (with
            ``check=True``) the worker exited non-zero
    """
    if abort_signal is not None and abort_signal.is_set():
        raise AbortedError()

    try:
        process = await spawner(command)
    except OSError as e:
        raise ProcessError(f"Failed to spawn {command.program}: {e}") from e

    track_key = key or command.cwd or command.program
    if tracker is not None:
        tracker.track(track_key, process)

    communicate = asyncio.ensure_future(process.communicate())
    abort_wait: asyncio.Future[bool] | None = None
    waiters: set[asyncio.Future] = {communicate}
    if abort_signal is not None:
        abort_wait = asyncio.ensure_future(abort_signal.wait())
        waiters.add(abort_wait)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

        if communicate in done:
            stdout, stderr = communicate.result()
            result = WorkerResult(
                returncode=process.returncode if process.returncode is not None else -1,
                stdout=_decode(stdout),
                stderr=_decode(stderr),
            )
            if check and not result.ok:
                raise ProcessError(
                    f"{command.program} exited with code {result.returncode}",
                    returncode=result.returncode,
                    stderr=result.stderr,
                )
            return result

        await terminate_process(process, grace_period)
        if abort_wait is not None and abort_wait in done:
            logger.debug("Aborted %s", " ".join(command.argv()))
            raise AbortedError()
        raise ProcessError(f"{command.program} timed out after {timeout}s")

    except asyncio.CancelledError:
        _send_terminate(process)
        raise

    finally:
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()
                try:
                    await waiter
                except (asyncio.CancelledError, Exception):
                    pass
        if tracker is not None:
            tracker.release(track_key, process)
