"""
Driver event timeline.

The JobDriver appends one event per lifecycle step (engine loaded, queue
paused, job started, stale result dropped, ...). The timeline answers
"why did this job end up like this" after the fact.

Recording is append-only and must never raise into the driver.
"""

import threading
from enum import Enum
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


class ExecutionEventType(str, Enum):
    """Driver event types."""

    # Engine
    ENGINE_READY = "engine_ready"
    ENGINE_FAILED = "engine_failed"

    # Run flag
    QUEUE_RESUMED = "queue_resumed"
    QUEUE_PAUSED = "queue_paused"

    # Job lifecycle
    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_SKIPPED = "job_skipped"
    JOBS_CLEARED = "jobs_cleared"

    # An engine event arrived for a job that is no longer processing
    STALE_EVENT_DISCARDED = "stale_event_discarded"


class ExecutionEvent(BaseModel):
    """Single execution event. Immutable once created."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_type: ExecutionEventType
    timestamp: datetime = Field(default_factory=datetime.now)

    # Optional context
    job_id: Optional[str] = None
    message: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.timestamp:%H:%M:%S.%f} {self.event_type.value}"
        if self.job_id:
            text += f" (job: {self.job_id[:8]})"
        if self.message:
            text += f" - {self.message}"
        return text


class ExecutionEventRecorder:
    """
    Non-invasive event recorder for the job driver.

    Captures events in order from any thread. If recording fails,
    execution continues.
    """

    def __init__(self):
        self._events: List[ExecutionEvent] = []
        self._lock = threading.Lock()

    def record(
        self,
        event_type: ExecutionEventType,
        job_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """
        Record an execution event.

        CRITICAL: This method NEVER raises exceptions.
        """
        try:
            event = ExecutionEvent(
                event_type=event_type,
                job_id=job_id,
                message=message,
            )
            with self._lock:
                self._events.append(event)
        except Exception:
            # Event recording never gates execution
            pass

    def get_events(self) -> List[ExecutionEvent]:
        """Get all recorded events in order."""
        with self._lock:
            return self._events.copy()

    def get_events_for_job(self, job_id: str) -> List[ExecutionEvent]:
        """Get all events for a specific job, in order."""
        return [e for e in self.get_events() if e.job_id == job_id]

    def event_types(self, job_id: Optional[str] = None) -> List[ExecutionEventType]:
        """Event types in order, optionally filtered to one job."""
        events = self.get_events() if job_id is None else self.get_events_for_job(job_id)
        return [e.event_type for e in events]

    def clear(self) -> None:
        """Drop all recorded events."""
        with self._lock:
            self._events.clear()
