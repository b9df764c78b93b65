"""
Job driver: single-worker, level-triggered FIFO execution.

The driver re-examines the whole queue store whenever the store, the
run flag or engine readiness changes, and decides whether a job should
start.

Design rules:
- At most one job executes against the engine at a time
- FIFO order: the first QUEUED job in store order starts next
- Pause stops new selection; the in-flight job runs to completion
- Skip is advisory for a PROCESSING job: the engine call keeps running
  and its later events are discarded
- One job failing never stops the queue
- No polling: the driver is a store subscriber

Single-concurrency is enforced by an explicit in-flight guard owned by
the driver, set before the PROCESSING write and cleared only after
cleanup. Job status is checked as well, but is not the authority.

A spawned worker keeps claiming the next eligible job until none is
left, so a new worker is spawned only when the queue was idle.
"""

import functools
import logging
import math
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..config import QueueConfig
from ..deliver.settings import CompressionSettings, DEFAULT_COMPRESSION_SETTINGS
from ..jobs.errors import JobNotFoundError
from ..jobs.models import Job, JobStatus
from ..jobs.state import can_transition
from ..jobs.store import QueueStore
from .base import TranscodeEngine, EngineError
from .events import ExecutionEventRecorder, ExecutionEventType
from .progress import fraction_to_percent

logger = logging.getLogger(__name__)


Spawn = Callable[[Callable[[], None]], None]
SourceLoader = Callable[[str], bytes]

# Error recorded when a job body exits without writing an outcome
ABANDONED_MESSAGE = "Execution ended without a result"


def _spawn_thread(target: Callable[[], None]) -> None:
    """Run target on a new daemon thread."""
    thread = threading.Thread(target=target, name="clipqueue-job", daemon=True)
    thread.start()


def _read_source(source_ref: str) -> bytes:
    return Path(source_ref).read_bytes()


def describe_failure(error: BaseException) -> str:
    """Human-readable message for a failed job."""
    message = str(error).strip()
    return message or type(error).__name__


class _ExecutionScope:
    """
    Progress subscription for one execute() call.

    Closed as soon as the call resolves; callbacks arriving through a
    closed scope are stale.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._active = True
        self.stale_reported = False

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        self._active = False


class JobDriver:
    """
    Reactive control loop over a QueueStore and a TranscodeEngine.

    Usage:
        driver = JobDriver(store, engine)
        driver.start()        # initialize engine, subscribe to store
        driver.resume()       # set the run flag
        store.append(jobs)    # picked up without an explicit start
    """

    def __init__(
        self,
        store: QueueStore,
        engine: TranscodeEngine,
        settings: Optional[CompressionSettings] = None,
        config: Optional[QueueConfig] = None,
        recorder: Optional[ExecutionEventRecorder] = None,
        spawn: Optional[Spawn] = None,
        source_loader: Optional[SourceLoader] = None,
    ):
        """
        Initialize job driver.

        Args:
            store: Queue store to drive (the driver becomes its sole writer)
            engine: Transcoding engine
            settings: Initial global compression settings
            config: Queue configuration
            recorder: Event timeline (a fresh one by default)
            spawn: Runs a worker body; a new thread per worker by default
            source_loader: Reads source bytes for a job's source_ref
        """
        self._store = store
        self._engine = engine
        self._config = config or QueueConfig()
        self._settings = settings or DEFAULT_COMPRESSION_SETTINGS
        self.events = recorder or ExecutionEventRecorder()
        self._spawn = spawn or _spawn_thread
        self._load_source = source_loader or _read_source

        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._running = self._config.start_running
        self._in_flight: Optional[str] = None
        self._engine_error: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # =========================================================================
    # Observed inputs
    # =========================================================================

    @property
    def store(self) -> QueueStore:
        return self._store

    @property
    def running(self) -> bool:
        """Run flag. False means no new job is selected."""
        with self._lock:
            return self._running

    @property
    def engine_ready(self) -> bool:
        return self._engine.ready

    @property
    def engine_error(self) -> Optional[str]:
        """Engine load failure message, if loading failed."""
        with self._lock:
            return self._engine_error

    @property
    def in_flight_job_id(self) -> Optional[str]:
        """ID of the job whose engine execution has not yet resolved."""
        with self._lock:
            return self._in_flight

    @property
    def settings(self) -> CompressionSettings:
        """Global settings, captured by each job when it starts."""
        with self._lock:
            return self._settings

    @settings.setter
    def settings(self, value: CompressionSettings) -> None:
        with self._lock:
            self._settings = value
        logger.info(
            f"[Driver] Settings changed: size={value.size.value} "
            f"quality={value.quality} speed={value.speed.value}"
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        """
        Subscribe to the store and load the engine.

        Returns:
            True if the engine is ready
        """
        with self._lock:
            if self._unsubscribe is None:
                self._unsubscribe = self._store.subscribe(self.evaluate)

        ready = self.initialize_engine()
        self.evaluate()
        return ready

    def stop(self) -> None:
        """Pause and unsubscribe from the store. The in-flight job still finishes."""
        self.pause()
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def initialize_engine(self, retry: bool = False) -> bool:
        """
        Load the engine once.

        A load failure is reported once and leaves the driver idle.
        It is not retried unless retry=True.

        Returns:
            True if the engine is ready
        """
        if self._engine.ready:
            return True

        with self._lock:
            if self._engine_error is not None and not retry:
                return False

        try:
            self._engine.initialize()
        except Exception as e:
            message = describe_failure(e)
            with self._lock:
                self._engine_error = message
                self._idle.notify_all()
            logger.error(f"[Driver] Engine '{self._engine.name}' failed to load: {message}")
            self.events.record(ExecutionEventType.ENGINE_FAILED, message=message)
            return False

        with self._lock:
            self._engine_error = None
        logger.info(f"[Driver] Engine '{self._engine.name}' ready")
        self.events.record(ExecutionEventType.ENGINE_READY, message=self._engine.name)
        self.evaluate()
        return True

    def pause(self) -> None:
        """Stop selecting new jobs. The in-flight job runs to completion."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._idle.notify_all()
        logger.info("[Driver] Paused")
        self.events.record(ExecutionEventType.QUEUE_PAUSED)

    def resume(self) -> None:
        """Start (or continue) selecting QUEUED jobs."""
        with self._lock:
            if self._running:
                return
            self._running = True
        logger.info("[Driver] Resumed")
        self.events.record(ExecutionEventType.QUEUE_RESUMED)
        self.evaluate()

    def set_running(self, running: bool) -> None:
        """Set the run flag."""
        if running:
            self.resume()
        else:
            self.pause()

    # =========================================================================
    # Operator actions
    # =========================================================================

    def skip(self, job_id: str) -> bool:
        """
        Mark a QUEUED or PROCESSING job SKIPPED.

        Skipping a PROCESSING job does not abort the engine call; the
        next job starts once that call resolves.

        Returns:
            True if the job was skipped, False if it was already terminal

        Raises:
            JobNotFoundError: If the job does not exist
        """
        if self._store.get(job_id) is None:
            raise JobNotFoundError(job_id)

        previous = {}

        def _skippable(job: Job) -> bool:
            previous["status"] = job.status
            return can_transition(job.status, JobStatus.SKIPPED)

        skipped = self._store.update(
            job_id,
            when=_skippable,
            status=JobStatus.SKIPPED,
            completed_at=datetime.now(),
        )
        if not skipped:
            status = previous.get("status")
            logger.debug(
                f"[Driver] Skip ignored for job {job_id[:8]}: "
                f"{status.value if status else 'removed'}"
            )
            return False

        if previous.get("status") == JobStatus.PROCESSING:
            logger.info(
                f"[Driver] Job {job_id[:8]} skipped while processing; "
                f"engine execution continues and its results will be discarded"
            )
        else:
            logger.info(f"[Driver] Job {job_id[:8]} skipped")
        self.events.record(ExecutionEventType.JOB_SKIPPED, job_id=job_id)
        return True

    def clear_finished(self, include_skipped: Optional[bool] = None) -> List[Job]:
        """
        Remove terminal jobs from the store.

        Args:
            include_skipped: Also remove SKIPPED jobs (defaults to
                QueueConfig.clear_skipped)

        Returns:
            The removed jobs, in store order
        """
        if include_skipped is None:
            include_skipped = self._config.clear_skipped

        statuses = {JobStatus.DONE, JobStatus.ERROR}
        if include_skipped:
            statuses.add(JobStatus.SKIPPED)

        removed = self._store.remove_where(lambda job: job.status in statuses)
        if removed:
            self.events.record(
                ExecutionEventType.JOBS_CLEARED,
                message=f"{len(removed)} job(s)",
            )
        return removed

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until nothing is in flight and no job can start.

        Returns:
            True if idle, False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(self._is_idle, timeout=timeout)

    # =========================================================================
    # Driving loop
    # =========================================================================

    def evaluate(self) -> None:
        """
        Start the next eligible job, if any.

        Safe to call at any time, from any thread, including re-entrantly
        from a store notification raised by the driver's own writes.
        """
        with self._lock:
            claimed = self._claim_next()
        if claimed is not None:
            self._spawn(functools.partial(self._work, *claimed))

    def _claim_next(self) -> Optional[Tuple[Job, CompressionSettings]]:
        """
        Select the next job, mark it PROCESSING and set the in-flight guard.

        Lock must be held.

        Returns:
            The claimed job with the settings captured for it, or None
        """
        while True:
            job = self._select_next()
            if job is None:
                self._idle.notify_all()
                return None

            settings = self._settings
            self._in_flight = job.id
            started = self._store.update(
                job.id,
                when=lambda current: current.status == JobStatus.QUEUED,
                status=JobStatus.PROCESSING,
                progress=0,
                error_message=None,
                output_ref=None,
                started_at=datetime.now(),
                completed_at=None,
            )
            if started:
                return job, settings

            # Skipped or removed since the snapshot; select again
            self._in_flight = None

    def _work(self, job: Job, settings: CompressionSettings) -> None:
        """
        Worker body: run claimed jobs one after another until none is eligible.

        Re-arming happens in this loop, so a synchronous spawn processes
        any number of jobs without nesting calls.
        """
        claimed: Optional[Tuple[Job, CompressionSettings]] = (job, settings)
        while claimed is not None:
            job, settings = claimed
            try:
                self._run_job(job, settings)
            except BaseException:
                # Re-arm before propagating
                self._release(job.id)
                self.evaluate()
                raise
            self._release(job.id)
            with self._lock:
                claimed = self._claim_next()

    def _release(self, job_id: str) -> bool:
        """
        Clear the in-flight guard after a job body exits.

        A job the body left PROCESSING is failed first, so it can never
        block selection once the guard is gone.

        Returns:
            True if the job had to be failed here
        """
        abandoned = self._store.update(
            job_id,
            when=lambda current: current.status == JobStatus.PROCESSING,
            status=JobStatus.ERROR,
            error_message=ABANDONED_MESSAGE,
            completed_at=datetime.now(),
        )
        if abandoned:
            logger.error(f"[Driver] Job {job_id[:8]} failed: {ABANDONED_MESSAGE}")
            self.events.record(ExecutionEventType.JOB_FAILED, job_id=job_id, message=ABANDONED_MESSAGE)

        with self._lock:
            self._in_flight = None
            self._idle.notify_all()
        return abandoned

    def _select_next(self) -> Optional[Job]:
        """First QUEUED job if a new job may start now. Lock must be held."""
        if not self._running or not self._engine.ready:
            return None

        if self._in_flight is not None:
            return None

        snapshot = self._store.snapshot()
        processing = [job for job in snapshot if job.status == JobStatus.PROCESSING]
        if processing:
            logger.warning(
                f"[Driver] Job {processing[0].id[:8]} is PROCESSING without an "
                f"in-flight execution; not starting another job"
            )
            return None

        for job in snapshot:
            if job.status == JobStatus.QUEUED:
                return job
        return None

    def _is_idle(self) -> bool:
        """Lock must be held."""
        if self._in_flight is not None:
            return False
        if not self._running or not self._engine.ready:
            return True
        statuses = {job.status for job in self._store.snapshot()}
        # A PROCESSING record without an execution blocks selection too
        return JobStatus.PROCESSING in statuses or JobStatus.QUEUED not in statuses

    # =========================================================================
    # Job execution
    # =========================================================================

    def _run_job(self, job: Job, settings: CompressionSettings) -> None:
        """Execute one job end to end. Runs on the spawned worker."""
        input_handle = f"input-{job.id}{Path(job.display_name).suffix}"
        output_handle = f"output-{job.id}.mp4"
        scope = _ExecutionScope(job.id)

        logger.info(f"[Driver] Job {job.id[:8]} started: {job.display_name}")
        self.events.record(ExecutionEventType.JOB_STARTED, job_id=job.id, message=job.display_name)

        try:
            arguments = settings.to_arguments(input_handle, output_handle)
            data = self._load_source(job.source_ref)
            self._engine.write_input(input_handle, data)
            self._engine.execute(
                arguments,
                on_progress=functools.partial(self._on_progress, scope),
            )
            scope.close()
            output = self._engine.read_output(output_handle)
            self._finish(
                job.id,
                JobStatus.DONE,
                progress=100,
                output_ref=output,
            )
        except Exception as e:
            scope.close()
            message = describe_failure(e)
            if isinstance(e, (EngineError, OSError)):
                logger.error(f"[Driver] Job {job.id[:8]} failed: {message}")
            else:
                logger.exception(f"[Driver] Job {job.id[:8]} failed: {message}")
            self._finish(job.id, JobStatus.ERROR, error_message=message)
        finally:
            scope.close()
            self._cleanup(input_handle, output_handle)

    def _on_progress(self, scope: _ExecutionScope, fraction: float) -> None:
        """Apply a progress event if it still belongs to a PROCESSING job."""
        if not scope.active:
            self._discard_stale(scope, "progress after execution resolved")
            return

        if not isinstance(fraction, (int, float)) or not math.isfinite(fraction):
            logger.debug(f"[Driver] Ignoring invalid progress value: {fraction!r}")
            return

        applied = self._store.update(
            scope.job_id,
            when=lambda current: current.status == JobStatus.PROCESSING,
            progress=fraction_to_percent(fraction),
        )
        if not applied:
            self._discard_stale(scope, "progress for a job no longer processing")

    def _discard_stale(self, scope: _ExecutionScope, reason: str) -> None:
        logger.debug(f"[Driver] Discarding stale event for job {scope.job_id[:8]}: {reason}")
        if not scope.stale_reported:
            scope.stale_reported = True
            self.events.record(
                ExecutionEventType.STALE_EVENT_DISCARDED,
                job_id=scope.job_id,
                message=reason,
            )

    def _finish(self, job_id: str, status: JobStatus, **fields) -> None:
        """Write a job outcome unless the job left PROCESSING meanwhile."""
        previous = {}

        def _still_processing(current: Job) -> bool:
            previous["status"] = current.status
            return current.status == JobStatus.PROCESSING and can_transition(current.status, status)

        applied = self._store.update(
            job_id,
            when=_still_processing,
            status=status,
            completed_at=datetime.now(),
            **fields,
        )

        if not applied:
            current = previous.get("status")
            reason = f"{status.value} result for a job that is now {current.value if current else 'removed'}"
            logger.info(f"[Driver] Discarding {reason} ({job_id[:8]})")
            self.events.record(ExecutionEventType.STALE_EVENT_DISCARDED, job_id=job_id, message=reason)
            return

        if status == JobStatus.DONE:
            logger.info(f"[Driver] Job {job_id[:8]} completed")
            self.events.record(ExecutionEventType.JOB_COMPLETED, job_id=job_id)
        else:
            self.events.record(
                ExecutionEventType.JOB_FAILED,
                job_id=job_id,
                message=fields.get("error_message"),
            )

    def _cleanup(self, *handles: str) -> None:
        """Best-effort handle deletion. Failures never affect job status."""
        for handle in handles:
            try:
                self._engine.delete_handle(handle)
            except Exception as e:
                logger.debug(f"[Driver] Ignoring cleanup failure for '{handle}': {e}")
