"""Nodes around GIF encoding, frame cleanup and the run report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..errors import EmptySequenceError, StorageError
from ..sequence.assembler import colors_for_quality, load_frames, select_frames, write_gif
from ..sequence.storage import FrameStore
from ..services.base import ImageBackend
from ..types import FrameArtifact, RunState
from ..utils.files import safe_stem, write_json
from .base import BaseNode, frame_records

logger = logging.getLogger(__name__)


class AssembleAnimation(BaseNode):
    """Selects frames according to the gap policy and encodes the GIF."""

    def __init__(
        self,
        run_id: str,
        logger,
        store: FrameStore,
        output_dir: str | Path,
        placeholder_backend: Optional[ImageBackend] = None,
    ) -> None:
        super().__init__(name="AssembleAnimation", run_id=run_id, logger=logger)
        self._store = store
        self._output_dir = Path(output_dir)
        self._placeholder_backend = placeholder_backend

    def output_path_for(self, state: RunState) -> Path:
        category = state.category.value if state.category else "generic"
        return self._output_dir / f"{safe_stem(state.request.base_prompt)}_{category}_{self.run_id}.gif"

    def run(self, state: RunState) -> RunState:
        """Write the animation, or record the run-level error on the state.

        Frames that cannot be read back are marked failed in ``state.artifacts``
        and the rest are still encoded.
        """
        request = state.request
        output_path = self.output_path_for(state)
        self.log_prompt(
            f"Assembling {len(state.artifacts)} artifacts into {output_path} "
            f"(policy={request.gap_policy.value}, delay={request.delay_ms}ms, quality={request.quality})."
        )

        unreadable: List[FrameArtifact] = []
        try:
            if not any(artifact.ok for artifact in state.artifacts):
                raise EmptySequenceError(
                    f"No frame succeeded ({len(state.artifacts)} attempted); nothing to assemble."
                )
            selected = select_frames(
                state.artifacts,
                request.gap_policy,
                frame_plan=state.plan,
                store=self._store,
                placeholder_backend=self._placeholder_backend,
                run_id=self.run_id,
            )
            loaded, unreadable = load_frames(
                selected,
                self._store,
                width=request.width,
                height=request.height,
                quality=request.quality,
            )
            if unreadable:
                failed = {artifact.index: artifact for artifact in unreadable}
                state.artifacts = [
                    failed.get(artifact.index, artifact) if artifact.ok else artifact
                    for artifact in state.artifacts
                ]
            state.assembled_frames = [artifact for artifact, _ in loaded]
            if not loaded:
                raise EmptySequenceError("No readable frame left to assemble.")
            state.output_path = write_gif(
                [image for _, image in loaded],
                delay_ms=request.delay_ms,
                loop=request.loop_value,
                output_path=output_path,
            )
        except (EmptySequenceError, StorageError) as exc:
            logger.error("Assembly skipped: %s", exc)
            state.error = exc

        self.log_response(
            {
                "output_path": str(state.output_path) if state.output_path else None,
                "frames": [artifact.index for artifact in state.assembled_frames],
                "placeholders": [artifact.index for artifact in state.assembled_frames if artifact.placeholder],
                "unreadable": [artifact.index for artifact in unreadable],
                "colors": colors_for_quality(request.quality),
                "loop": request.loop_value,
                "error": str(state.error) if state.error else None,
            }
        )
        return state


class CleanupFrames(BaseNode):
    """Deletes intermediate frame files after a successful assembly."""

    def __init__(self, run_id: str, logger, store: FrameStore) -> None:
        super().__init__(name="CleanupFrames", run_id=run_id, logger=logger)
        self._store = store

    def run(self, state: RunState) -> RunState:
        if state.request.keep_frames or state.output_path is None:
            state.frames_kept = True
            self.log_prompt("Keeping frame files.")
            self.log_response({"removed": [], "frames_kept": True})
            return state

        locations = {
            artifact.image_location
            for artifact in [*state.artifacts, *state.assembled_frames]
            if artifact.image_location is not None
        }
        locations.update(self._store.run_files(self.run_id))
        removed = []
        for location in sorted(locations):
            try:
                self._store.remove(location)
            except StorageError as exc:
                logger.warning("Could not remove frame %s: %s", location, exc)
                continue
            removed.append(str(location))
        self._store.remove_run(self.run_id)
        state.frames_kept = len(removed) < len(locations)
        logger.info("Cleaned up %d frame file(s)", len(removed))

        self.log_prompt("Removing intermediate frame files.")
        self.log_response({"removed": removed, "frames_kept": state.frames_kept})
        return state


class ReportNode(BaseNode):
    """Aggregates and writes the final run report."""

    def __init__(self, run_id: str, logger, output_dir: str | Path, backend_name: str = "") -> None:
        super().__init__(name="Report", run_id=run_id, logger=logger)
        self._output_dir = Path(output_dir)
        self._backend_name = backend_name

    def run(self, state: RunState) -> RunState:
        """Write a JSON report and remember where it went."""
        result = state.to_result()
        request = state.request
        report = {
            "run_id": self.run_id,
            "outcome": result.outcome.value,
            "summary": result.summary(),
            "backend": self._backend_name,
            "prompt": request.base_prompt,
            "category": state.category.value if state.category else None,
            "frame_count": request.frame_count,
            "size": [request.width, request.height],
            "delay_ms": request.delay_ms,
            "quality": request.quality,
            "loop": request.loop_value,
            "gap_policy": request.gap_policy.value,
            "output_path": str(state.output_path) if state.output_path else None,
            "cancelled": state.cancelled,
            "frames_kept": state.frames_kept,
            "error": str(state.error) if state.error else None,
            "frames": frame_records(state.artifacts),
        }
        report_path = self._output_dir / f"{self.run_id}-report.json"
        state.report_path = write_json(report_path, report)

        self.log_prompt("Generating final report.")
        self.log_response({"report_path": str(report_path)})
        return state
