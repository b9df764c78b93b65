"""
Execution: transcoding engines and the job driver.

FFmpeg is the only concrete engine. The driver talks to engines through
the TranscodeEngine interface only.
"""

from .base import (
    TranscodeEngine,
    ProgressCallback,
    EngineError,
    EngineNotAvailableError,
    EngineExecutionError,
)
from .events import (
    ExecutionEventType,
    ExecutionEvent,
    ExecutionEventRecorder,
)
from .progress import ProgressParser, ProgressInfo, fraction_to_percent
from .ffmpeg import FFmpegEngine
from .driver import JobDriver, describe_failure

__all__ = [
    # Engine interface
    "TranscodeEngine",
    "ProgressCallback",
    "EngineError",
    "EngineNotAvailableError",
    "EngineExecutionError",
    # Events
    "ExecutionEventType",
    "ExecutionEvent",
    "ExecutionEventRecorder",
    # Progress
    "ProgressParser",
    "ProgressInfo",
    "fraction_to_percent",
    # Engines
    "FFmpegEngine",
    # Driver
    "JobDriver",
    "describe_failure",
]
