"""Nodes that decide the motion and the per-frame prompts."""

from __future__ import annotations

import logging

from ..sequence.classifier import classify
from ..sequence.planner import plan
from ..types import AUTO_CATEGORY, MotionCategory, RunState
from .base import BaseNode

logger = logging.getLogger(__name__)


class ClassifyMotion(BaseNode):
    """Resolves ``auto`` into a concrete motion category."""

    def __init__(self, run_id: str, logger) -> None:
        super().__init__(name="ClassifyMotion", run_id=run_id, logger=logger)

    def run(self, state: RunState) -> RunState:
        requested = state.request.motion_category
        if requested == AUTO_CATEGORY:
            state.category = classify(state.request.base_prompt)
            source = "detected"
        else:
            state.category = MotionCategory.parse(requested)
            source = "requested"
        logger.info("Animation type (%s): %s", source, state.category.value)

        self.log_prompt(state.request.base_prompt)
        self.log_response({"requested": str(requested), "category": state.category.value, "source": source})
        return state


class PlanFrames(BaseNode):
    """Expands the base prompt into one prompt per frame."""

    def __init__(self, run_id: str, logger) -> None:
        super().__init__(name="PlanFrames", run_id=run_id, logger=logger)

    def run(self, state: RunState) -> RunState:
        category = state.category or MotionCategory.GENERIC
        state.plan = plan(state.request.base_prompt, state.request.frame_count, category)

        self.log_prompt("\n".join(frame.prompt_text for frame in state.plan))
        self.log_response(
            {
                "category": category.value,
                "frames": [
                    {"index": frame.index, "progress": round(frame.progress_fraction, 4), "prompt": frame.prompt_text}
                    for frame in state.plan
                ],
            }
        )
        return state
