"""
Job submission.

Turns input files into QUEUED jobs ready to append to the QueueStore.
Source paths are accepted without reading the file; a missing or
unreadable source surfaces as a per-job ERROR at execution time.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Union

from .models import Job


def create_job(source: Union[str, Path], display_name: Optional[str] = None) -> Job:
    """
    Create a QUEUED job for a single source file.

    Args:
        source: Path to the source media file
        display_name: Label shown to the user (defaults to the file name)

    Returns:
        A new Job in QUEUED state
    """
    source_path = Path(source)
    if display_name is None:
        display_name = source_path.name

    if not display_name:
        raise ValueError(f"Cannot derive a display name from source: {source!r}")

    return Job(source_ref=str(source_path), display_name=display_name)


def create_jobs(sources: Iterable[Union[str, Path]]) -> List[Job]:
    """
    Create QUEUED jobs for a batch of source files, preserving order.

    Raises:
        ValueError: If sources is empty
    """
    jobs = [create_job(source) for source in sources]
    if not jobs:
        raise ValueError("Cannot submit an empty list of source files")
    return jobs
