"""
Output naming and saving.

Output names are derived from the job's display name:
    clip.mov -> clip-compressed.mp4
"""

import logging
from pathlib import Path
from typing import Union

from ..jobs.models import Job, JobStatus

logger = logging.getLogger(__name__)


OUTPUT_SUFFIX = "-compressed"
OUTPUT_EXTENSION = ".mp4"


def output_filename(display_name: str) -> str:
    """
    Resolve the output filename for a display name.

    Only the last extension is stripped; names without an extension
    keep their full stem.
    """
    stem = Path(display_name).stem or display_name
    return f"{stem}{OUTPUT_SUFFIX}{OUTPUT_EXTENSION}"


def save_output(job: Job, directory: Union[str, Path]) -> Path:
    """
    Write a finished job's output bytes into directory.

    Args:
        job: A job in DONE state
        directory: Target directory (created if missing)

    Returns:
        Path of the written file

    Raises:
        ValueError: If the job has no output
    """
    if job.status != JobStatus.DONE or job.output_ref is None:
        raise ValueError(
            f"Job {job.id} has no output to save (status: {job.status.value})"
        )

    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)

    target = target_dir / output_filename(job.display_name)
    target.write_bytes(job.output_ref)
    logger.info(f"Saved {job.display_name} -> {target}")
    return target
