"""
Queue configuration.

All values have working defaults. Environment overrides are OPTIONAL
and not required for normal operation:

    CLIPQUEUE_FFMPEG         ffmpeg binary path
    CLIPQUEUE_WORK_DIR       directory for engine handles
    CLIPQUEUE_TIMEOUT        per-job execution timeout in seconds
    CLIPQUEUE_CLEAR_SKIPPED  whether "clear finished" removes skipped jobs
"""

import os
from typing import Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field


ENV_FFMPEG = "CLIPQUEUE_FFMPEG"
ENV_WORK_DIR = "CLIPQUEUE_WORK_DIR"
ENV_TIMEOUT = "CLIPQUEUE_TIMEOUT"
ENV_CLEAR_SKIPPED = "CLIPQUEUE_CLEAR_SKIPPED"


class QueueConfig(BaseModel):
    """Runtime configuration for the engine and the job driver."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Engine
    ffmpeg_path: Optional[str] = None
    work_dir: Optional[str] = None
    execution_timeout: Optional[float] = Field(default=None, gt=0)

    # Driver
    clear_skipped: bool = True  # "clear finished" also removes SKIPPED jobs
    start_running: bool = False  # Run flag at driver construction

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "QueueConfig":
        """
        Build a config from environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        env = os.environ if environ is None else environ
        values = {}

        if env.get(ENV_FFMPEG):
            values["ffmpeg_path"] = env[ENV_FFMPEG]
        if env.get(ENV_WORK_DIR):
            values["work_dir"] = env[ENV_WORK_DIR]
        if env.get(ENV_TIMEOUT):
            values["execution_timeout"] = env[ENV_TIMEOUT]
        if env.get(ENV_CLEAR_SKIPPED):
            values["clear_skipped"] = env[ENV_CLEAR_SKIPPED]

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
