"""
Pytest configuration and shared fixtures.

ScriptedEngine is an in-memory TranscodeEngine whose execute() calls are
scripted one step per call. Steps can block on a gate so tests can
observe the queue while a job is in flight.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from clipqueue.execution.base import (
    TranscodeEngine,
    EngineNotAvailableError,
    EngineExecutionError,
)
from clipqueue.execution.driver import JobDriver
from clipqueue.jobs.models import Job, JobStatus
from clipqueue.jobs.store import QueueStore
from clipqueue.jobs.submission import create_job


# Generous bound for thread hand-offs; tests normally finish in milliseconds
WAIT = 5.0


@dataclass
class ExecutionStep:
    """Behavior of one scripted execute() call."""

    progress: List[float] = field(default_factory=list)
    error: Optional[Exception] = None
    output: Optional[bytes] = None
    produce_output: bool = True

    # When set, execute() blocks until the gate is opened
    gate: Optional[threading.Event] = None
    # Progress reported after the gate opens
    progress_after_gate: List[float] = field(default_factory=list)

    started: threading.Event = field(default_factory=threading.Event)
    # Set once pre-gate progress has been reported
    waiting: threading.Event = field(default_factory=threading.Event)
    finished: threading.Event = field(default_factory=threading.Event)
    callback: Optional[Callable[[float], None]] = None

    def release(self) -> None:
        if self.gate is not None:
            self.gate.set()


class ScriptedEngine(TranscodeEngine):
    """In-memory engine with scripted executions."""

    def __init__(self, fail_initialize: bool = False):
        self.fail_initialize = fail_initialize
        self.fail_write = False
        self.fail_delete = False
        # Called with the handle at the start of read_output()
        self.before_read: Optional[Callable[[str], None]] = None

        self.files: Dict[str, bytes] = {}
        self.executions: List[List[str]] = []
        self.deleted: List[str] = []
        self.initialize_calls = 0

        self.active = 0
        self.max_active = 0

        self._ready = False
        self._steps: deque = deque()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Scripted"

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        self.initialize_calls += 1
        if self.fail_initialize:
            raise EngineNotAvailableError(self.name, "load failed")
        self._ready = True

    def script(self, **kwargs) -> ExecutionStep:
        """Queue the behavior of the next unscripted execute() call."""
        if kwargs.pop("gated", False):
            kwargs["gate"] = threading.Event()
        step = ExecutionStep(**kwargs)
        self._steps.append(step)
        return step

    def write_input(self, handle: str, data: bytes) -> None:
        if self.fail_write:
            raise OSError("disk full")
        self.files[handle] = data

    def execute(self, arguments, on_progress=None) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            step = self._steps.popleft() if self._steps else ExecutionStep()
            self.executions.append(list(arguments))

        step.callback = on_progress
        step.started.set()
        try:
            for fraction in step.progress:
                on_progress(fraction)
            step.waiting.set()
            if step.gate is not None:
                assert step.gate.wait(WAIT), "execution gate was never opened"
            for fraction in step.progress_after_gate:
                on_progress(fraction)
            if step.error is not None:
                raise step.error
            if step.produce_output:
                input_handle, output_handle = arguments[1], arguments[-1]
                self.files[output_handle] = (
                    step.output if step.output is not None
                    else self.files[input_handle] + b"-compressed"
                )
        finally:
            with self._lock:
                self.active -= 1
            step.finished.set()

    def read_output(self, handle: str) -> bytes:
        if self.before_read is not None:
            self.before_read(handle)
        if handle not in self.files:
            raise EngineExecutionError(self.name, f"Output '{handle}' was not created")
        return self.files[handle]

    def delete_handle(self, handle: str) -> None:
        self.deleted.append(handle)
        if self.fail_delete:
            raise OSError("permission denied")
        del self.files[handle]


class StoreRecorder:
    """Store listener recording every snapshot it is notified with."""

    def __init__(self, store: QueueStore):
        self.store = store
        self.snapshots: List[List[Job]] = []
        self._lock = threading.Lock()

    def __call__(self) -> None:
        snapshot = self.store.snapshot()
        with self._lock:
            self.snapshots.append(snapshot)

    def max_processing(self) -> int:
        with self._lock:
            return max(
                (sum(1 for j in s if j.status == JobStatus.PROCESSING) for s in self.snapshots),
                default=0,
            )

    def progress_history(self, job_id: str) -> List[int]:
        """Distinct consecutive progress values seen while PROCESSING."""
        history: List[int] = []
        with self._lock:
            for snapshot in self.snapshots:
                for job in snapshot:
                    if job.id == job_id and job.status == JobStatus.PROCESSING:
                        if not history or history[-1] != job.progress:
                            history.append(job.progress)
        return history


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def store() -> QueueStore:
    return QueueStore()


@pytest.fixture
def recorder(store) -> StoreRecorder:
    rec = StoreRecorder(store)
    store.subscribe(rec)
    return rec


@pytest.fixture
def driver(store, engine):
    """Started driver with the run flag off."""
    drv = JobDriver(store, engine)
    drv.start()
    yield drv
    drv.stop()


@pytest.fixture
def make_jobs(tmp_path: Path):
    """Factory creating source files and QUEUED jobs for them."""

    def _make(*names: str) -> List[Job]:
        jobs = []
        for name in names:
            source = tmp_path / name
            source.write_bytes(f"source:{name}".encode())
            jobs.append(create_job(source))
        return jobs

    return _make


@pytest.fixture
def failing_engine() -> ScriptedEngine:
    """Engine whose initialize() raises until fail_initialize is cleared."""
    return ScriptedEngine(fail_initialize=True)
