"""
In-memory queue store.

The QueueStore is the single shared mutable resource of the queue:
- Ordered job records (insertion order is FIFO order)
- Append, partial update by ID, predicate removal
- Point-in-time snapshots for observers
- Change notification for the job driver

Records are immutable Job models. update() swaps in a validated copy
under the store lock, so concurrent readers never see a partial write.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from pydantic import ValidationError

from .errors import DuplicateJobError, ImmutableFieldError
from .models import Job, IMMUTABLE_FIELDS

logger = logging.getLogger(__name__)


Listener = Callable[[], None]
JobPredicate = Callable[[Job], bool]


class QueueStore:
    """
    Ordered, thread-safe store of Job records.

    The JobDriver is the sole writer after submission. Presentation
    layers read via snapshot() and never mutate records.
    """

    def __init__(self, jobs: Optional[Iterable[Job]] = None):
        # job_id -> Job, in insertion order
        self._jobs: Dict[str, Job] = {}
        # Every ID ever appended; IDs are never reused in a process
        self._seen_ids: Set[str] = set()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

        if jobs:
            self.append(jobs)

    def append(self, jobs: Iterable[Job]) -> None:
        """
        Add jobs to the end of the queue.

        Relative order of the batch is preserved.

        Raises:
            DuplicateJobError: If a job ID was already used
        """
        batch = list(jobs)
        if not batch:
            return

        with self._lock:
            batch_ids: Set[str] = set()
            for job in batch:
                if job.id in self._seen_ids or job.id in batch_ids:
                    raise DuplicateJobError(job.id)
                batch_ids.add(job.id)

            for job in batch:
                self._jobs[job.id] = job
            self._seen_ids.update(batch_ids)

        logger.debug(f"[Store] Appended {len(batch)} job(s)")
        self._notify()

    def update(self, job_id: str, when: Optional[JobPredicate] = None, **fields) -> bool:
        """
        Merge fields into the job matching job_id.

        Args:
            job_id: The job ID
            when: Optional predicate checked against the current record
                under the store lock; the update is discarded if it fails
            **fields: Fields to merge

        Returns:
            True if the job was updated, False if absent or rejected by `when`

        Raises:
            ImmutableFieldError: If fields include a creation-time field
            ValueError: If a field name is unknown or a value is invalid
        """
        immutable = IMMUTABLE_FIELDS.intersection(fields)
        if immutable:
            raise ImmutableFieldError(job_id, immutable)

        unknown = set(fields) - set(Job.model_fields)
        if unknown:
            raise ValueError(f"Unknown job field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                return False

            if when is not None and not when(current):
                return False

            try:
                updated = Job.model_validate({**current.model_dump(), **fields})
            except ValidationError as e:
                raise ValueError(f"Invalid update for job {job_id}: {e}") from e

            self._jobs[job_id] = updated

        self._notify()
        return True

    def remove_where(self, predicate: JobPredicate) -> List[Job]:
        """
        Remove all jobs matching predicate.

        Survivors keep their relative order.

        Returns:
            The removed jobs, in store order
        """
        with self._lock:
            removed = [job for job in self._jobs.values() if predicate(job)]
            for job in removed:
                del self._jobs[job.id]

        if removed:
            logger.info(f"[Store] Removed {len(removed)} job(s)")
            self._notify()
        return removed

    def snapshot(self) -> List[Job]:
        """Get a consistent, ordered point-in-time view of all jobs."""
        with self._lock:
            return list(self._jobs.values())

    def get(self, job_id: str) -> Optional[Job]:
        """Retrieve a job by ID, or None."""
        with self._lock:
            return self._jobs.get(job_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Listeners run after every mutation, outside the store lock.

        Returns:
            A callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("[Store] Change listener failed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self.snapshot())
