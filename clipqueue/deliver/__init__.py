"""
Deliver: compression settings, engine argument mapping and output naming.
"""

from .settings import (
    SizePreset,
    SpeedPreset,
    CompressionSettings,
    DEFAULT_COMPRESSION_SETTINGS,
    SIZE_MAX_DIMENSION,
)
from .engine_mapping import resolve_arguments, build_scale_filter
from .naming import output_filename, save_output

__all__ = [
    "SizePreset",
    "SpeedPreset",
    "CompressionSettings",
    "DEFAULT_COMPRESSION_SETTINGS",
    "SIZE_MAX_DIMENSION",
    "resolve_arguments",
    "build_scale_filter",
    "output_filename",
    "save_output",
]
