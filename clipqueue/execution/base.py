"""
Transcoding engine abstraction layer.

The JobDriver consumes exactly this capability surface:
- initialize once, then observe `ready`
- write input bytes under a handle
- execute an argument list, reporting fractional progress
- read output bytes by handle
- delete a handle (best-effort)

Engines hold one exclusive resource. The driver guarantees at most one
execute() call at a time; engines do not need their own queueing.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional


# Progress callback: fraction of the current execution in [0, 1]
ProgressCallback = Callable[[float], None]


class TranscodeEngine(ABC):
    """
    Abstract base class for transcoding engines.

    Progress callbacks are scoped to a single execute() call: an engine
    must not invoke a callback after the call that received it returns.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name for logs."""
        pass

    @property
    @abstractmethod
    def ready(self) -> bool:
        """True once initialize() has completed successfully."""
        pass

    @abstractmethod
    def initialize(self) -> None:
        """
        Load the engine. Called once before any job runs.

        Raises:
            EngineNotAvailableError: If the engine cannot be loaded
        """
        pass

    @abstractmethod
    def write_input(self, handle: str, data: bytes) -> None:
        """Store input bytes under handle."""
        pass

    @abstractmethod
    def execute(
        self,
        arguments: List[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Run the engine with arguments, blocking until it finishes.

        Raises:
            EngineExecutionError: If execution fails
        """
        pass

    @abstractmethod
    def read_output(self, handle: str) -> bytes:
        """Read the bytes stored under handle."""
        pass

    @abstractmethod
    def delete_handle(self, handle: str) -> None:
        """Delete handle. May raise; callers treat failures as non-fatal."""
        pass

    def close(self) -> None:
        """Release engine resources. Default is a no-op."""
        pass


class EngineError(Exception):
    """Base exception for all engine failures."""
    pass


class EngineNotAvailableError(EngineError):
    """Raised when the engine cannot be loaded on this system."""

    def __init__(self, engine_name: str, reason: str = ""):
        self.engine_name = engine_name
        self.reason = reason
        message = f"Engine '{engine_name}' is not available"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class EngineExecutionError(EngineError):
    """Raised when an engine call fails."""

    def __init__(
        self,
        engine_name: str,
        message: str,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.engine_name = engine_name
        self.exit_code = exit_code
        self.stderr = stderr

        text = f"[{engine_name}] {message}"
        if exit_code is not None:
            text += f" (exit code: {exit_code})"
        super().__init__(text)
