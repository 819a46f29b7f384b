"""
Single-flight job controller for long-running external workers.

An extension that needs an expensive artifact per resource (a search index
per project directory, say) creates one ``JobController`` and calls
``ensure(key)`` before every dependent operation:

    controller = JobController(lambda key: WorkerCommand("indexer", ["index"], cwd=key))

    outcome = await controller.ensure(project_dir, abort_signal)
    if outcome.ok:
        ...  # artifact is ready

    controller.mark_stale(project_dir)  # a watched file changed

Per key the controller moves through ``absent -> running -> ready`` and
``ready -> stale -> running -> ready``. At most one worker runs per key:
the job is entered in the table before the first ``await``, so a caller
arriving while the worker is being spawned joins the same outcome.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from agent_extensions.logging import get_logger
from agent_extensions.runtime.process import (
    DEFAULT_GRACE_PERIOD,
    Spawner,
    WorkerCommand,
    spawn_worker,
    terminate_process,
)

logger = get_logger("runtime.jobs")


class JobState(str, Enum):
    ABSENT = "absent"
    RUNNING = "running"
    READY = "ready"
    STALE = "stale"


class JobOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def ok(self) -> bool:
        return self is JobOutcome.COMPLETED


@dataclass
class Job:
    """An in-flight worker run. Lives in the job table only while running."""

    key: str
    outcome: asyncio.Future[JobOutcome]
    generation: int
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    abort_signal: asyncio.Event | None = None
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task[None] | None = None
    stdout: str = ""
    stderr: str = ""


class JobController:
    """
    Runs at most one external worker per key and tracks readiness.

    Args:
        command_for: Builds the worker command for a key
        artifact_exists: Optional probe for an artifact left by an earlier
            host process (e.g. an index file on disk); counts as ready
        spawner: Process factory, replaceable in tests
        name: Label used in log messages
        grace_period: Seconds between SIGTERM and SIGKILL on cancellation
    """

    def __init__(
        self,
        command_for: Callable[[str], WorkerCommand],
        artifact_exists: Callable[[str], bool] | None = None,
        spawner: Spawner = spawn_worker,
        name: str = "job",
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self._command_for = command_for
        self._artifact_exists = artifact_exists
        self._spawner = spawner
        self.name = name
        self.grace_period = grace_period

        self._jobs: dict[str, Job] = {}
        self._ready: set[str] = set()
        self._stale: set[str] = set()
        # bumped by mark_stale; a build only clears staleness it started after
        self._generations: dict[str, int] = {}

    # State

    @property
    def jobs(self) -> Mapping[str, Job]:
        return MappingProxyType(self._jobs)

    def state(self, key: str) -> JobState:
        if key in self._jobs:
            return JobState.RUNNING
        has_result = key in self._ready or self._probe(key)
        if not has_result:
            return JobState.ABSENT
        if key in self._stale:
            return JobState.STALE
        return JobState.READY

    def is_running(self, key: str) -> bool:
        return key in self._jobs

    def mark_stale(self, key: str) -> None:
        """Invalidate the artifact for ``key``; the next ``ensure`` rebuilds."""
        self._stale.add(key)
        self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug("%s: marked %s stale", self.name, key)

    def forget(self, key: str) -> None:
        """Drop readiness and staleness for ``key`` (not a running job)."""
        self._ready.discard(key)
        self._stale.discard(key)
        self._generations.pop(key, None)

    # Operations

    async def ensure(self, key: str, abort_signal: asyncio.Event | None = None) -> JobOutcome:
        """
        Make sure the artifact for ``key`` is ready.

        Joins a running job, returns at once when ready and not stale, and
        otherwise starts a new worker.
        """
        job = self._jobs.get(key)
        if job is not None:
            logger.info("%s: waiting for existing run for %s", self.name, key)
            return await self._wait(job, abort_signal)

        if self.state(key) is JobState.READY:
            return JobOutcome.COMPLETED

        job = self._start(key, abort_signal)
        return await self._wait(job, None)

    async def build(self, key: str, abort_signal: asyncio.Event | None = None) -> JobOutcome:
        """Run the worker for ``key`` even if ready, joining a running job."""
        job = self._jobs.get(key)
        if job is not None:
            return await self._wait(job, abort_signal)
        job = self._start(key, abort_signal)
        return await self._wait(job, None)

    def start(self, key: str) -> Job:
        """Start (or return) a background run for ``key`` without waiting."""
        job = self._jobs.get(key)
        if job is not None:
            return job
        return self._start(key, None)

    async def cancel(self, key: str) -> JobOutcome | None:
        """Cancel the running job for ``key``; None when nothing runs."""
        job = self._jobs.get(key)
        if job is None:
            return None
        job.cancel_event.set()
        return await asyncio.shield(job.outcome)

    async def shutdown(self) -> None:
        """Cancel every running job and wait for them to settle."""
        jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel_event.set()
        if jobs:
            await asyncio.gather(*(asyncio.shield(job.outcome) for job in jobs))

    # Internals

    def _probe(self, key: str) -> bool:
        if self._artifact_exists is None:
            return False
        try:
            return bool(self._artifact_exists(key))
        except OSError as e:
            logger.warning("%s: artifact probe failed for %s: %s", self.name, key, e)
            return False

    def _start(self, key: str, abort_signal: asyncio.Event | None) -> Job:
        # Must stay free of awaits: the table entry is the single-flight guard.
        loop = asyncio.get_running_loop()
        job = Job(
            key=key,
            outcome=loop.create_future(),
            generation=self._generations.get(key, 0),
            abort_signal=abort_signal,
        )
        self._jobs[key] = job
        job.task = asyncio.create_task(self._run(job))
        logger.info("%s: started run for %s", self.name, key)
        return job

    async def _wait(self, job: Job, abort_signal: asyncio.Event | None) -> JobOutcome:
        """Wait for ``job``; a joiner's own abort detaches only that joiner."""
        outcome = asyncio.shield(job.outcome)
        if abort_signal is None:
            return await outcome
        if abort_signal.is_set():
            return JobOutcome.ABORTED

        abort_wait = asyncio.ensure_future(abort_signal.wait())
        try:
            done, _ = await asyncio.wait({outcome, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not abort_wait.done():
                abort_wait.cancel()
        if outcome in done:
            return outcome.result()
        return JobOutcome.ABORTED

    def _settle(self, job: Job, outcome: JobOutcome) -> None:
        # Idempotent: the table entry and the future are each cleared once.
        if self._jobs.get(job.key) is job:
            del self._jobs[job.key]
        if not job.outcome.done():
            job.outcome.set_result(outcome)

    async def _run(self, job: Job) -> None:
        waiters: list[asyncio.Future] = []
        try:
            if job.cancel_event.is_set() or (job.abort_signal is not None and job.abort_signal.is_set()):
                logger.info("%s: run for %s aborted before spawn", self.name, job.key)
                self._settle(job, JobOutcome.ABORTED)
                return

            try:
                command = self._command_for(job.key)
                job.process = await self._spawner(command)
            except Exception as e:
                logger.warning("%s: failed to start worker for %s: %s", self.name, job.key, e)
                self._settle(job, JobOutcome.FAILED)
                return

            communicate = asyncio.ensure_future(job.process.communicate())
            cancel_wait = asyncio.ensure_future(job.cancel_event.wait())
            waiters = [communicate, cancel_wait]
            if job.abort_signal is not None:
                waiters.append(asyncio.ensure_future(job.abort_signal.wait()))

            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

            if communicate not in done:
                await terminate_process(job.process, self.grace_period)
                logger.info("%s: run for %s aborted", self.name, job.key)
                self._settle(job, JobOutcome.ABORTED)
                return

            stdout, stderr = communicate.result()
            job.stdout = (stdout or b"").decode("utf-8", errors="replace")
            job.stderr = (stderr or b"").decode("utf-8", errors="replace")

            if job.process.returncode != 0:
                logger.warning(
                    "%s: worker for %s exited with code %s: %s",
                    self.name,
                    job.key,
                    job.process.returncode,
                    job.stderr.strip(),
                )
                self._settle(job, JobOutcome.FAILED)
                return

            self._ready.add(job.key)
            if self._generations.get(job.key, 0) == job.generation:
                self._stale.discard(job.key)
            else:
                logger.debug("%s: %s went stale during the run", self.name, job.key)
            logger.info("%s: run for %s completed", self.name, job.key)
            self._settle(job, JobOutcome.COMPLETED)

        except asyncio.CancelledError:
            if job.process is not None and job.process.returncode is None:
                try:
                    job.process.terminate()
                except ProcessLookupError:
                    pass
            self._settle(job, JobOutcome.ABORTED)
            raise
        except Exception as e:
            logger.error("%s: run for %s failed: %s", self.name, job.key, e, exc_info=True)
            if job.process is not None:
                await terminate_process(job.process, self.grace_period)
            self._settle(job, JobOutcome.FAILED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
