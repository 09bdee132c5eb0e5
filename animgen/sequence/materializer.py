"""Turns a frame plan into stored images, one backend request at a time.

Frames are generated strictly in index order with a single request in
flight. A failed frame is recorded and the run moves on to the next index;
cancellation is honoured between frames and never leaves a half-written
file behind.
"""

from __future__ import annotations

import logging
import threading
import time
from io import BytesIO
from typing import Callable, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from ..errors import BackendError, FrameGenerationError, StorageError
from ..services.base import ImageBackend
from ..types import FrameArtifact, FrameSpec, FrameStatus
from .storage import FrameStore

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag with an optional deadline."""

    def __init__(self, timeout_sec: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout_sec if timeout_sec else None
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("deadline exceeded")
        return self._event.is_set()


def check_image_payload(data: bytes) -> None:
    """Raise :class:`BackendError` unless ``data`` decodes as an image."""
    if not data:
        raise BackendError("Empty image payload.", backend="payload")
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise BackendError(f"Malformed image payload: {exc}", backend="payload") from exc


class FrameMaterializer:
    """Generates and persists every planned frame, recording per-frame outcomes."""

    def __init__(
        self,
        store: FrameStore,
        *,
        max_retries: int = 0,
        request_interval_sec: float = 0.0,
        retry_delay_sec: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._max_retries = max(0, max_retries)
        self._request_interval = request_interval_sec
        self._retry_delay = retry_delay_sec
        self._sleep = sleep

    def materialize(
        self,
        frame_plan: Sequence[FrameSpec],
        backend: ImageBackend,
        *,
        run_id: str,
        reference_images: Sequence[str] = (),
        cancel_token: Optional[CancelToken] = None,
    ) -> List[FrameArtifact]:
        """Return one artifact per attempted frame, in index order."""
        token = cancel_token or CancelToken()
        artifacts: List[FrameArtifact] = []
        total = len(frame_plan)

        for position, frame in enumerate(sorted(frame_plan, key=lambda item: item.index)):
            if token.cancelled:
                logger.warning("Run %s cancelled before frame %d/%d (%s)", run_id, frame.index + 1, total, token.reason)
                break
            if position and self._request_interval > 0:
                self._sleep(self._request_interval)

            logger.info("Generating frame %d/%d...", frame.index + 1, total)
            try:
                artifact = self._materialize_frame(frame, backend, run_id, reference_images, token)
            except KeyboardInterrupt:
                token.cancel("interrupted")
                logger.warning("Run %s interrupted during frame %d/%d", run_id, frame.index + 1, total)
                break
            if artifact is None:
                break

            artifacts.append(artifact)
            if artifact.ok:
                logger.info("Frame %d generated: %s", frame.index + 1, artifact.image_location)
            else:
                logger.error("Frame %d failed: %s", frame.index + 1, artifact.error)

        done = sum(1 for artifact in artifacts if artifact.ok)
        logger.info("Materialized %d/%d frames for run %s", done, total, run_id)
        return artifacts

    def _materialize_frame(
        self,
        frame: FrameSpec,
        backend: ImageBackend,
        run_id: str,
        reference_images: Sequence[str],
        token: CancelToken,
    ) -> Optional[FrameArtifact]:
        attempts = 0
        last_error: Optional[BaseException] = None

        for attempt in range(self._max_retries + 1):
            if attempt:
                if token.cancelled:
                    return None
                logger.warning(
                    "Retrying frame %d (attempt %d/%d) after: %s",
                    frame.index + 1,
                    attempt + 1,
                    self._max_retries + 1,
                    last_error,
                )
                if self._retry_delay > 0:
                    self._sleep(self._retry_delay)
            attempts += 1
            try:
                data = backend.generate(frame.prompt_text, reference_images)
                check_image_payload(data)
            except Exception as exc:  # noqa: BLE001 - any backend fault is a failed attempt
                last_error = exc
                continue

            try:
                location = self._store.write(FrameStore.frame_key(run_id, frame.index), data)
            except StorageError as exc:
                # A frame that cannot be stored counts as never generated.
                return FrameArtifact(
                    index=frame.index,
                    status=FrameStatus.FAILED,
                    error=str(exc),
                    attempts=attempts,
                )
            return FrameArtifact(
                index=frame.index,
                status=FrameStatus.SUCCESS,
                image_location=location,
                attempts=attempts,
            )

        failure = FrameGenerationError(frame.index, attempts, last_error or RuntimeError("unknown error"))
        return FrameArtifact(
            index=frame.index,
            status=FrameStatus.FAILED,
            error=str(failure),
            attempts=attempts,
        )

