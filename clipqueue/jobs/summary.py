"""
Queue summary counts.

Read-only aggregate view over a store snapshot, for the CLI and any
other observer that wants totals instead of per-job records.
"""

from typing import Iterable
from pydantic import BaseModel, ConfigDict

from .models import Job, JobStatus


class QueueSummary(BaseModel):
    """Summary of queue state at one point in time."""

    model_config = ConfigDict(extra="forbid")

    total: int
    queued_count: int
    processing_count: int
    done_count: int
    error_count: int
    skipped_count: int

    # Overall percentage across non-skipped jobs (0 - 100)
    overall_progress: int

    @property
    def finished_count(self) -> int:
        """Jobs in a terminal state."""
        return self.done_count + self.error_count + self.skipped_count

    @property
    def is_drained(self) -> bool:
        """True when nothing is waiting or running."""
        return self.queued_count == 0 and self.processing_count == 0


def summarize(jobs: Iterable[Job]) -> QueueSummary:
    """
    Build a QueueSummary from a sequence of jobs.

    Finished jobs (DONE or ERROR) count as 100% toward overall progress,
    queued jobs as 0%. Skipped jobs are excluded.
    """
    jobs = list(jobs)
    counts = {status: 0 for status in JobStatus}
    for job in jobs:
        counts[job.status] += 1

    weighted = [job for job in jobs if job.status != JobStatus.SKIPPED]
    if weighted:
        points = 0
        for job in weighted:
            if job.status in (JobStatus.DONE, JobStatus.ERROR):
                points += 100
            elif job.status == JobStatus.PROCESSING:
                points += job.progress
        overall = round(points / len(weighted))
    else:
        overall = 0

    return QueueSummary(
        total=len(jobs),
        queued_count=counts[JobStatus.QUEUED],
        processing_count=counts[JobStatus.PROCESSING],
        done_count=counts[JobStatus.DONE],
        error_count=counts[JobStatus.ERROR],
        skipped_count=counts[JobStatus.SKIPPED],
        overall_progress=overall,
    )
