"""
Job queue: records, lifecycle rules and the ordered queue store.

This package manages job records and their legal state transitions.
It does NOT execute transcoding (see clipqueue.execution).
"""

from .errors import (
    JobError,
    JobNotFoundError,
    DuplicateJobError,
    ImmutableFieldError,
    InvalidStateTransitionError,
)
from .models import (
    JobStatus,
    Job,
)
from .state import (
    TERMINAL_STATES,
    is_terminal,
    can_transition,
    validate_transition,
)
from .store import QueueStore
from .submission import create_job, create_jobs
from .summary import QueueSummary, summarize

__all__ = [
    # Errors
    "JobError",
    "JobNotFoundError",
    "DuplicateJobError",
    "ImmutableFieldError",
    "InvalidStateTransitionError",
    # Models
    "JobStatus",
    "Job",
    # State validation
    "TERMINAL_STATES",
    "is_terminal",
    "can_transition",
    "validate_transition",
    # Store
    "QueueStore",
    # Submission
    "create_job",
    "create_jobs",
    # Summary
    "QueueSummary",
    "summarize",
]
