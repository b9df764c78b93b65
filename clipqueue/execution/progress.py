"""
FFmpeg progress parsing.

FFmpeg reports the input duration once in its banner:
    Duration: 00:01:02.50, start: 0.000000, bitrate: 1205 kb/s

and then progress to stderr in this format:
    frame=   24 fps= 12 q=28.0 size=       0kB time=00:00:01.00 bitrate=   0.0kbits/s speed=0.5x

We parse:
- Duration: HH:MM:SS.ss -> total length (first match only, the input)
- time=HH:MM:SS.ss -> current position
- position / duration -> fraction in [0, 1]
"""

import re
from dataclasses import dataclass
from typing import Optional, Callable


# Regex to extract the input duration from the FFmpeg banner
DURATION_PATTERN = re.compile(r'Duration:\s*(\d{2}):(\d{2}):(\d{2})\.(\d{2})')

# Regex to extract time= value from FFmpeg stderr
# Matches: time=00:00:01.00 or time=00:01:23.45
TIME_PATTERN = re.compile(r'time=(\d{2}):(\d{2}):(\d{2})\.(\d{2})')


def _to_seconds(match: "re.Match") -> float:
    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    centiseconds = int(match.group(4))
    return hours * 3600 + minutes * 60 + seconds + centiseconds / 100.0


@dataclass
class ProgressInfo:
    """Progress information for a running execution."""

    # Fraction complete (0.0 - 1.0)
    fraction: float = 0.0

    # Current position in seconds
    current_time: float = 0.0

    # Total duration in seconds (0 until the banner has been parsed)
    total_duration: float = 0.0


class ProgressParser:
    """
    Parse FFmpeg stderr output into fractional progress.

    Usage:
        parser = ProgressParser(on_progress=callback)
        for line in ffmpeg_stderr:
            parser.parse_line(line)
    """

    def __init__(
        self,
        duration: Optional[float] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize progress parser.

        Args:
            duration: Known total duration in seconds; parsed from the
                banner when not given
            on_progress: Optional callback receiving the fraction
        """
        self.on_progress = on_progress
        self._progress = ProgressInfo(total_duration=duration or 0.0)

    def parse_line(self, line: str) -> Optional[ProgressInfo]:
        """
        Parse a single line of FFmpeg stderr output.

        Returns:
            Updated ProgressInfo if line contained progress, None otherwise
        """
        if self._progress.total_duration <= 0:
            duration_match = DURATION_PATTERN.search(line)
            if duration_match:
                self._progress.total_duration = _to_seconds(duration_match)
                return None

        time_match = TIME_PATTERN.search(line)
        if not time_match:
            return None

        current_time = _to_seconds(time_match)
        self._progress.current_time = current_time

        if self._progress.total_duration > 0:
            self._progress.fraction = min(1.0, current_time / self._progress.total_duration)
        else:
            self._progress.fraction = 0.0

        if self.on_progress:
            self.on_progress(self._progress.fraction)

        return self._progress

    def get_progress(self) -> ProgressInfo:
        """Get current progress info."""
        return self._progress


def fraction_to_percent(fraction: float) -> int:
    """Convert a progress fraction to an integer percentage in [0, 100]."""
    return max(0, min(100, round(fraction * 100)))
