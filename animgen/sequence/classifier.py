"""Keyword-based detection of the motion a prompt asks for."""

from __future__ import annotations

from typing import Tuple

from ..types import MotionCategory

# Checked top to bottom; the first category with a matching keyword wins,
# so "dancing while flying" resolves to WING_BEAT.
KEYWORD_TABLE: Tuple[Tuple[MotionCategory, Tuple[str, ...]], ...] = (
    (MotionCategory.CYCLIC_LIMB, ("walk", "running", "moving")),
    (MotionCategory.WING_BEAT, ("fly", "flying", "soar")),
    (MotionCategory.DANCE_POSE, ("dance", "dancing")),
    (MotionCategory.PROGRESSIVE_TRANSFORM, ("grow", "bloom", "transform")),
    (MotionCategory.WAVE, ("wave", "ocean", "water")),
    (MotionCategory.ROTATIONAL, ("spin", "rotate", "turn")),
)


def classify(base_prompt: str) -> MotionCategory:
    """Map a free-text prompt to a motion category; never fails."""
    lowered = (base_prompt or "").lower()
    for category, keywords in KEYWORD_TABLE:
        if any(keyword in lowered for keyword in keywords):
            return category
    return MotionCategory.GENERIC


__all__ = ["KEYWORD_TABLE", "classify"]
