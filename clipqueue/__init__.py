"""
clipqueue: sequential media compression queue.

Files are compressed one at a time with live progress, pause/resume,
per-job failure isolation and skip, while more work can be added at any
time.
"""

from .config import QueueConfig
from .deliver import CompressionSettings, SizePreset, SpeedPreset
from .execution import JobDriver, FFmpegEngine, TranscodeEngine
from .jobs import Job, JobStatus, QueueStore, create_job, create_jobs

__version__ = "0.1.0"

__all__ = [
    "QueueConfig",
    "CompressionSettings",
    "SizePreset",
    "SpeedPreset",
    "JobDriver",
    "FFmpegEngine",
    "TranscodeEngine",
    "Job",
    "JobStatus",
    "QueueStore",
    "create_job",
    "create_jobs",
]
