"""Job contracts shared by the dispatcher and units of work.

Key types:
- `JobResult`: outcome returned by a unit of work.
- `JobWork`: protocol for anything the dispatcher can execute.
- `JobRequest`: one queued `(job_id, work)` pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

ProgressReporter = Callable[[int], None]

PROGRESS_COMPLETE = 100
PROGRESS_FAILED = -1


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of one job; the dispatcher maps it to 100 or -1."""

    ok: bool
    message: str = ""

    @classmethod
    def succeeded(cls, message: str = "") -> JobResult:
        return cls(ok=True, message=message)

    @classmethod
    def failed(cls, message: str) -> JobResult:
        return cls(ok=False, message=message)


class JobWork(Protocol):
    """Unit of work executed synchronously on a dispatcher worker."""

    def execute(self, report_progress: ProgressReporter) -> JobResult:
        """Run the job, reporting integer progress along the way."""


@dataclass(frozen=True, slots=True)
class JobRequest:
    job_id: str
    work: JobWork


def status_for(progress: int) -> str:
    """Derive the externally visible job status from a progress value."""

    if progress >= PROGRESS_COMPLETE:
        return "completed"
    if progress < 0:
        return "error"
    return "processing"
