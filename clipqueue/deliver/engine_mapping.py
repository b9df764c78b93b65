"""
Engine Mapping Layer: translate CompressionSettings to engine arguments.

This is the ONLY place where compression choices become FFmpeg
arguments. The driver and the engine never interpret settings directly.

The mapping is a pure function: identical inputs always produce an
identical argument list.

Fixed output contract:
- H.264 video in an MP4 container
- AAC audio at a constant 128 kb/s
- moov atom at the front (+faststart) for progressive download
"""

from typing import List, Optional, Union

from .settings import (
    SizePreset,
    SpeedPreset,
    SIZE_MAX_DIMENSION,
    QUALITY_MIN,
    QUALITY_MAX,
)


VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "128k"
OUTPUT_FLAGS = ["-movflags", "+faststart"]


def build_scale_filter(max_dimension: int) -> str:
    """
    Build a scale filter bounding the longest side to max_dimension.

    Landscape sources are bounded on width, portrait on height. The other
    side follows the aspect ratio. Both sides come out even, as H.264
    in yuv420p requires: -2 rounds the derived side and trunc(x/2)*2 the
    bounded one. min() against the input size means sources already
    inside the bound are never upscaled.
    """
    if max_dimension <= 0 or max_dimension % 2:
        raise ValueError(f"Maximum dimension must be a positive even number, got {max_dimension}")

    return (
        f"scale='if(gte(iw,ih),min({max_dimension},trunc(iw/2)*2),-2)'"
        f":'if(gte(iw,ih),-2,min({max_dimension},trunc(ih/2)*2))'"
    )


def resolve_arguments(
    size: Union[SizePreset, str],
    quality: int,
    speed: Union[SpeedPreset, str],
    input_name: str = "input",
    output_name: str = "output.mp4",
) -> List[str]:
    """
    Resolve compression choices into an FFmpeg argument list.

    Args:
        size: Size preset (or its string value)
        quality: Constant rate factor, lower means higher fidelity
        speed: Encoder speed preset (or its string value)
        input_name: Engine handle of the input
        output_name: Engine handle of the output

    Returns:
        Argument list, without the ffmpeg binary itself

    Raises:
        ValueError: If a preset is unknown or quality is out of range
    """
    size = SizePreset(size)
    speed = SpeedPreset(speed)

    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValueError(f"Quality must be an integer, got {quality!r}")
    if not QUALITY_MIN <= quality <= QUALITY_MAX:
        raise ValueError(
            f"Quality must be between {QUALITY_MIN} and {QUALITY_MAX}, got {quality}"
        )

    args = ["-i", input_name]

    max_dimension: Optional[int] = SIZE_MAX_DIMENSION[size]
    if max_dimension is not None:
        args.extend(["-vf", build_scale_filter(max_dimension)])

    args.extend([
        "-c:v", VIDEO_CODEC,
        "-crf", str(quality),
        "-preset", speed.value,
    ])
    args.extend(["-c:a", AUDIO_CODEC, "-b:a", AUDIO_BITRATE])
    args.extend(OUTPUT_FLAGS)
    args.append(output_name)

    return args
