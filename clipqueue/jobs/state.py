"""
State transition validation for jobs.

Job lifecycle: QUEUED -> PROCESSING -> DONE | ERROR
Skip: QUEUED -> SKIPPED, PROCESSING -> SKIPPED (advisory, see driver.py)

INVARIANT: Terminal states (DONE, ERROR, SKIPPED) are immutable.
Once a job enters a terminal state, no state transition is allowed.
A late engine event must never regress a terminal job to PROCESSING or DONE.
"""

from typing import FrozenSet, Set, Tuple
from .models import JobStatus
from .errors import InvalidStateTransitionError


TERMINAL_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.DONE,
    JobStatus.ERROR,
    JobStatus.SKIPPED,
})


def is_terminal(status: JobStatus) -> bool:
    """
    Check if a job status is terminal (immutable).

    Args:
        status: The job status to check

    Returns:
        True if the status is terminal, False otherwise
    """
    return status in TERMINAL_STATES


# Legal job state transitions
_TRANSITIONS: Set[Tuple[JobStatus, JobStatus]] = {
    # Selection by the driver
    (JobStatus.QUEUED, JobStatus.PROCESSING),

    # Execution outcome
    (JobStatus.PROCESSING, JobStatus.DONE),
    (JobStatus.PROCESSING, JobStatus.ERROR),

    # User skip
    (JobStatus.QUEUED, JobStatus.SKIPPED),
    (JobStatus.PROCESSING, JobStatus.SKIPPED),
}


def can_transition(from_status: JobStatus, to_status: JobStatus) -> bool:
    """
    Check if a job state transition is legal.

    Staying in the same non-terminal state is allowed (progress updates).

    Args:
        from_status: Current job status
        to_status: Target job status

    Returns:
        True if the transition is allowed, False otherwise
    """
    if is_terminal(from_status):
        return False

    if from_status == to_status:
        return True

    return (from_status, to_status) in _TRANSITIONS


def validate_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    """
    Validate a job state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition(from_status, to_status):
        raise InvalidStateTransitionError(from_status.value, to_status.value)
