"""
FFmpeg transcoding engine.

Real transcoding via subprocess.Popen.

Design rules:
- Handles are file names inside a private working directory
- One subprocess per execute() call
- stderr streamed line by line for progress and kept as a tail for audit
- Non-zero exit code = EngineExecutionError
- Optional timeout kills the process; no cooperative cancellation
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from collections import deque
from pathlib import Path
from typing import List, Optional

from .base import (
    TranscodeEngine,
    ProgressCallback,
    EngineError,
    EngineNotAvailableError,
    EngineExecutionError,
)
from .progress import ProgressParser

logger = logging.getLogger(__name__)


# Environment variable overriding the ffmpeg binary location
ENV_FFMPEG_PATH = "CLIPQUEUE_FFMPEG"

# Common install locations, checked after PATH
COMMON_FFMPEG_PATHS = [
    "/usr/local/bin/ffmpeg",
    "/usr/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
]

# Number of stderr lines kept for failure reports
STDERR_TAIL_LINES = 20


class FFmpegEngine(TranscodeEngine):
    """
    FFmpeg-based transcoding engine.

    Inputs and outputs live in a working directory that the engine
    creates on initialize() and removes on close().
    """

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        work_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize FFmpeg engine.

        Args:
            ffmpeg_path: Explicit ffmpeg binary (skips discovery)
            work_dir: Directory for handles (a temporary one by default)
            timeout: Seconds before a running execution is killed
        """
        self._ffmpeg_path = ffmpeg_path
        self._requested_work_dir = work_dir
        self._work_dir: Optional[Path] = None
        self._owns_work_dir = False
        self._timeout = timeout
        self._ready = False

    @property
    def name(self) -> str:
        return "FFmpeg"

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def work_dir(self) -> Optional[Path]:
        """Working directory holding handles, once initialized."""
        return self._work_dir

    def _find_ffmpeg(self) -> Optional[str]:
        """Find ffmpeg binary path."""
        if self._ffmpeg_path:
            return self._ffmpeg_path

        override_path = os.environ.get(ENV_FFMPEG_PATH)
        if override_path:
            self._ffmpeg_path = override_path
            return override_path

        ffmpeg_path = shutil.which("ffmpeg")
        if ffmpeg_path:
            self._ffmpeg_path = ffmpeg_path
            return ffmpeg_path

        for path in COMMON_FFMPEG_PATHS:
            if os.path.isfile(path) and os.access(path, os.X_OK):
                self._ffmpeg_path = path
                return path

        return None

    def initialize(self) -> None:
        """Locate and probe ffmpeg, then create the working directory."""
        if self._ready:
            return

        ffmpeg_path = self._find_ffmpeg()
        if not ffmpeg_path:
            raise EngineNotAvailableError(
                self.name,
                f"ffmpeg is not installed or not in PATH (set {ENV_FFMPEG_PATH} to override)",
            )

        try:
            probe = subprocess.run(
                [ffmpeg_path, "-version"],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise EngineNotAvailableError(self.name, f"cannot run {ffmpeg_path}: {e}") from e

        if probe.returncode != 0:
            raise EngineNotAvailableError(
                self.name,
                f"{ffmpeg_path} -version exited with code {probe.returncode}",
            )

        version_line = probe.stdout.splitlines()[0] if probe.stdout else "unknown version"
        logger.info(f"[FFmpeg] Using {ffmpeg_path} ({version_line})")

        if self._requested_work_dir:
            self._work_dir = Path(self._requested_work_dir)
            self._work_dir.mkdir(parents=True, exist_ok=True)
            self._owns_work_dir = False
        else:
            self._work_dir = Path(tempfile.mkdtemp(prefix="clipqueue-"))
            self._owns_work_dir = True

        self._ready = True

    def _handle_path(self, handle: str) -> Path:
        """Resolve a handle to a path inside the working directory."""
        if not self._ready or self._work_dir is None:
            raise EngineError(f"{self.name} engine is not initialized")

        if not handle or handle in (".", "..") or Path(handle).name != handle:
            raise ValueError(f"Invalid engine handle: {handle!r}")

        return self._work_dir / handle

    def write_input(self, handle: str, data: bytes) -> None:
        self._handle_path(handle).write_bytes(data)

    def read_output(self, handle: str) -> bytes:
        path = self._handle_path(handle)
        if not path.is_file():
            raise EngineExecutionError(self.name, f"Output '{handle}' was not created")
        return path.read_bytes()

    def delete_handle(self, handle: str) -> None:
        self._handle_path(handle).unlink()

    def execute(
        self,
        arguments: List[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Run ffmpeg with arguments inside the working directory.

        Raises:
            EngineExecutionError: On non-zero exit or timeout
        """
        if not self._ready or self._ffmpeg_path is None:
            raise EngineError(f"{self.name} engine is not initialized")

        cmd = [self._ffmpeg_path, "-hide_banner", "-nostdin", "-y", *arguments]
        logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")

        parser = ProgressParser(on_progress=on_progress)
        tail: deque = deque(maxlen=STDERR_TAIL_LINES)
        timed_out = threading.Event()

        try:
            # Text mode turns FFmpeg's carriage-return progress lines into lines
            process = subprocess.Popen(
                cmd,
                cwd=str(self._work_dir),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise EngineExecutionError(self.name, f"Failed to start ffmpeg: {e}") from e

        logger.debug(f"[FFmpeg] Started PID {process.pid}")

        timer: Optional[threading.Timer] = None
        if self._timeout:
            def _kill() -> None:
                timed_out.set()
                process.kill()

            timer = threading.Timer(self._timeout, _kill)
            timer.daemon = True
            timer.start()

        try:
            for line in process.stderr:
                line = line.strip()
                if not line:
                    continue
                tail.append(line)
                parser.parse_line(line)
            exit_code = process.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stderr.close()

        logger.debug(f"[FFmpeg] PID {process.pid} exited with code {exit_code}")
        stderr_tail = "\n".join(tail)

        if timed_out.is_set():
            raise EngineExecutionError(
                self.name,
                f"Execution exceeded {self._timeout}s timeout",
                exit_code=exit_code,
                stderr=stderr_tail,
            )

        if exit_code != 0:
            reason = tail[-1] if tail else "ffmpeg failed"
            raise EngineExecutionError(
                self.name,
                reason,
                exit_code=exit_code,
                stderr=stderr_tail,
            )

    def close(self) -> None:
        """Remove the working directory if the engine created it."""
        if self._work_dir is not None and self._owns_work_dir:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            logger.debug(f"[FFmpeg] Removed working directory {self._work_dir}")
        self._work_dir = None
        self._ready = False
