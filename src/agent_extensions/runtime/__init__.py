"""
External worker processes and single-flight jobs.
"""

from agent_extensions.runtime.jobs import Job, JobController, JobOutcome, JobState
from agent_extensions.runtime.process import (
    ProcessTable,
    WorkerCommand,
    WorkerResult,
    run_worker,
    spawn_worker,
    terminate_process,
)

__all__ = [
    "Job",
    "JobController",
    "JobOutcome",
    "JobState",
    "ProcessTable",
    "WorkerCommand",
    "WorkerResult",
    "run_worker",
    "spawn_worker",
    "terminate_process",
]
