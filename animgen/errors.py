"""Exception hierarchy for the animation pipeline.

Per-frame problems (:class:`FrameGenerationError`, :class:`StorageError`)
are recovered by the materializer and the assembly step and recorded on the
frame artifact.
Run-level problems (:class:`InvalidRequestError`, :class:`EmptySequenceError`,
:class:`BackendUnavailableError`) reach the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .types import SequenceResult


class AnimgenError(Exception):
    """Base class for every error raised by this package."""


class InvalidRequestError(AnimgenError, ValueError):
    """The animation request is out of range; no work was started."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("Invalid animation request: " + "; ".join(self.errors))


class EmptySequenceError(AnimgenError, RuntimeError):
    """No frame is available for encoding."""

    def __init__(self, message: str = "Cannot encode an animation with zero frames.") -> None:
        super().__init__(message)
        self.result: Optional["SequenceResult"] = None


class BackendError(AnimgenError, RuntimeError):
    """An image backend rejected a request, timed out, or answered garbage."""

    def __init__(self, message: str, *, backend: str = "unknown") -> None:
        super().__init__(f"[{backend}] {message}")
        self.backend = backend


class BackendUnavailableError(BackendError):
    """No image backend is configured or reachable."""


class FrameGenerationError(AnimgenError, RuntimeError):
    """A single frame failed after exhausting its retries."""

    def __init__(self, index: int, attempts: int, cause: BaseException) -> None:
        super().__init__(f"Frame {index + 1} failed after {attempts} attempt(s): {cause}")
        self.index = index
        self.attempts = attempts
        self.cause = cause


class StorageError(AnimgenError, OSError):
    """Persisting or reading a frame image failed."""
