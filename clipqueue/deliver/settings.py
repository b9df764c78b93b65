"""
CompressionSettings: the user's quality/size/speed choices.

CompressionSettings define HOW outputs will be created:
- Global for the queue, editable at any time
- Captured by the driver at the moment a job enters PROCESSING
- A job already processing is never affected by later changes

Translation into engine arguments happens in engine_mapping.py only.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class SizePreset(str, Enum):
    """
    Output size presets.

    Each preset bounds the longest side of the video. Sources already
    within the bound are left untouched (never upscaled).
    """

    ORIGINAL = "original"
    P1080 = "1080p"
    P720 = "720p"
    P480 = "480p"


# Maximum length of the longest side, in pixels
SIZE_MAX_DIMENSION: Dict[SizePreset, Optional[int]] = {
    SizePreset.ORIGINAL: None,
    SizePreset.P1080: 1920,
    SizePreset.P720: 1280,
    SizePreset.P480: 854,
}


class SpeedPreset(str, Enum):
    """
    Encoder speed presets, fastest first.

    Slower presets spend more encode time for a smaller output at the
    same quality.
    """

    ULTRAFAST = "ultrafast"
    SUPERFAST = "superfast"
    VERYFAST = "veryfast"
    FASTER = "faster"
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"
    SLOWER = "slower"
    VERYSLOW = "veryslow"


# Quality dial bounds (constant rate factor: lower = better, larger)
QUALITY_MIN = 0
QUALITY_MAX = 51
DEFAULT_QUALITY = 28


class CompressionSettings(BaseModel):
    """
    Complete, immutable compression configuration.

    frozen=True: changing settings means replacing the object, so the
    copy captured by an in-flight job cannot change under it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    size: SizePreset = SizePreset.ORIGINAL
    quality: int = Field(default=DEFAULT_QUALITY, ge=QUALITY_MIN, le=QUALITY_MAX)
    speed: SpeedPreset = SpeedPreset.MEDIUM

    @property
    def max_dimension(self) -> Optional[int]:
        """Longest-side bound for the size preset, None for original."""
        return SIZE_MAX_DIMENSION[self.size]

    def to_arguments(self, input_name: str, output_name: str) -> List[str]:
        """Resolve these settings into an engine argument list."""
        from .engine_mapping import resolve_arguments
        return resolve_arguments(
            self.size,
            self.quality,
            self.speed,
            input_name=input_name,
            output_name=output_name,
        )


DEFAULT_COMPRESSION_SETTINGS = CompressionSettings()
