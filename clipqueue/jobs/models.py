"""
Job data model.

A Job is one submitted media file and its processing record.
Jobs are independent: one job failing must never block the others.

Jobs are immutable Pydantic models. The queue store replaces a record
with an updated copy, so a snapshot never shows a half-written job.
State transitions are validated externally (see state.py).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, FrozenSet
from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """
    Job status.

    QUEUED -> PROCESSING -> DONE | ERROR, and QUEUED | PROCESSING -> SKIPPED.
    """

    QUEUED = "queued"  # Waiting to be processed
    PROCESSING = "processing"  # Currently held by the engine
    DONE = "done"  # Compressed output available
    ERROR = "error"  # Failed during processing
    SKIPPED = "skipped"  # Skipped by the user (advisory while processing)


# Fields fixed at creation. Only status, progress and outcome fields mutate.
IMMUTABLE_FIELDS: FrozenSet[str] = frozenset({
    "id",
    "source_ref",
    "display_name",
    "created_at",
})


class Job(BaseModel):
    """
    A single file compression job.

    Owned exclusively by the QueueStore. The JobDriver is the only writer
    after creation and writes through QueueStore.update().
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_ref: str  # Path to the input bytes (not validated at creation)
    display_name: str

    # State
    status: JobStatus = JobStatus.QUEUED

    # Progress (0 - 100), meaningful only while PROCESSING
    progress: int = Field(default=0, ge=0, le=100)

    # Outcome
    output_ref: Optional[bytes] = Field(default=None, repr=False)  # Set when DONE
    error_message: Optional[str] = None  # Set when ERROR

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        """True once the job can no longer change state."""
        from .state import is_terminal
        return is_terminal(self.status)

    @property
    def output_size(self) -> Optional[int]:
        """Size of the compressed output in bytes, if any."""
        if self.output_ref is None:
            return None
        return len(self.output_ref)
