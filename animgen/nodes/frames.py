"""Node driving the per-frame backend calls."""

from __future__ import annotations

from typing import Optional

from ..sequence.materializer import CancelToken, FrameMaterializer
from ..services.base import ImageBackend
from ..types import RunState
from .base import BaseNode


class MaterializeFrames(BaseNode):
    """Generates every planned frame and records the outcome of each."""

    def __init__(
        self,
        run_id: str,
        logger,
        backend: ImageBackend,
        materializer: FrameMaterializer,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        super().__init__(name="MaterializeFrames", run_id=run_id, logger=logger)
        self._backend = backend
        self._materializer = materializer
        self._cancel_token = cancel_token or CancelToken()

    def run(self, state: RunState) -> RunState:
        """Populate ``state.artifacts``; a cancelled token marks the run cancelled."""
        self.log_prompt(f"Materializing {len(state.plan)} frames with backend {self._backend.name}.")
        state.artifacts = self._materializer.materialize(
            state.plan,
            self._backend,
            run_id=self.run_id,
            reference_images=state.request.reference_images,
            cancel_token=self._cancel_token,
        )
        state.cancelled = self._cancel_token.cancelled

        self.log_frames(
            state.artifacts,
            backend=self._backend.name,
            cancelled=state.cancelled,
            cancel_reason=self._cancel_token.reason,
        )
        return state
