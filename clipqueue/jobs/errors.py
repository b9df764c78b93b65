"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.
"""


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class JobNotFoundError(JobError):
    """Raised when a job cannot be found in the queue store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class DuplicateJobError(JobError):
    """Raised when a job ID has already been used in this process."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job with ID '{job_id}' already exists")


class ImmutableFieldError(JobError):
    """Raised when an update targets a field that is fixed at creation."""

    def __init__(self, job_id: str, fields):
        self.job_id = job_id
        self.fields = sorted(fields)
        super().__init__(
            f"Cannot update immutable field(s) on job {job_id}: "
            f"{', '.join(self.fields)}"
        )


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal state transition."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid job state transition: {current_state} -> {target_state}"
        )
