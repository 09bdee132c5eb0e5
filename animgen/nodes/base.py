"""The node protocol and the step-tracing base shared by pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Protocol

from ..types import FrameArtifact, RunState
from ..utils.run_logger import RunLogger


class Node(Protocol):
    """One pipeline step; it reads and updates the shared run state."""

    name: str

    def run(self, state: RunState) -> RunState:
        ...


def frame_records(artifacts: Iterable[FrameArtifact]) -> List[Dict[str, Any]]:
    """JSON-ready view of frame artifacts, in the order given."""
    return [
        {
            "index": artifact.index,
            "status": artifact.status.value,
            "attempts": artifact.attempts,
            "image_location": str(artifact.image_location) if artifact.image_location else None,
            "placeholder": artifact.placeholder,
            "error": artifact.error,
        }
        for artifact in artifacts
    ]


@dataclass(slots=True)
class BaseNode:
    """Base for steps that trace what they were asked and what they produced."""

    name: str
    run_id: str
    logger: RunLogger

    def log_prompt(self, prompt: str) -> None:
        self.logger.log_prompt(self.run_id, self.name, prompt)

    def log_response(self, response: object) -> None:
        self.logger.log_response(self.run_id, self.name, response)

    def log_frames(self, artifacts: Iterable[FrameArtifact], **fields: Any) -> None:
        """Trace the per-frame outcome next to step-specific ``fields``."""
        self.log_response({**fields, "frames": frame_records(artifacts)})
