"""Deterministic expansion of one prompt into an ordered frame plan.

Cyclic motions walk a fixed phase table with ``index % len(table)`` so a
sequence of any length repeats the same cycle. Rotation is monotonic and
embeds an angle instead; transformations move from an initial state through
percentage stages to a final state.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, List, Tuple

from ..types import FrameSpec, MotionCategory

CONSISTENCY_SUFFIX = "consistent character, background and scene"

PHASE_TABLES: Dict[MotionCategory, Tuple[str, ...]] = {
    MotionCategory.CYCLIC_LIMB: ("left foot forward", "mid-stride", "right foot forward", "mid-stride"),
    MotionCategory.WING_BEAT: ("wings up", "wings mid-flap", "wings down", "wings mid-flap"),
    MotionCategory.DANCE_POSE: ("arms up", "arms to side", "arms down", "arms crossed"),
    MotionCategory.WAVE: ("low wave", "rising wave", "high wave", "falling wave"),
    MotionCategory.GENERIC: ("center position", "slightly left", "slightly right", "back to center"),
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values, independent of banker's rounding."""
    return int(math.floor(value + 0.5))


def progress_fraction(index: int, frame_count: int) -> float:
    """Position of ``index`` in the sequence, 0.0 for single-frame plans."""
    if frame_count <= 1:
        return 0.0
    return index / (frame_count - 1)


def _cyclic(category: MotionCategory) -> Callable[[int, int, float], str]:
    table = PHASE_TABLES[category]

    def describe(index: int, frame_count: int, progress: float) -> str:
        return table[index % len(table)]

    return describe


def _rotational(index: int, frame_count: int, progress: float) -> str:
    angle = round_half_up(360 * index / frame_count)
    return f"rotated {angle} degrees"


def _transform(index: int, frame_count: int, progress: float) -> str:
    if index == 0:
        return "initial state, beginning of transformation"
    if index == frame_count - 1:
        return "final state, transformation complete"
    percent = round_half_up(100 * progress)
    return f"{percent}% transformed, mid-transformation stage {index}"


DESCRIPTORS: Dict[MotionCategory, Callable[[int, int, float], str]] = {
    MotionCategory.CYCLIC_LIMB: _cyclic(MotionCategory.CYCLIC_LIMB),
    MotionCategory.WING_BEAT: _cyclic(MotionCategory.WING_BEAT),
    MotionCategory.DANCE_POSE: _cyclic(MotionCategory.DANCE_POSE),
    MotionCategory.PROGRESSIVE_TRANSFORM: _transform,
    MotionCategory.ROTATIONAL: _rotational,
    MotionCategory.WAVE: _cyclic(MotionCategory.WAVE),
    MotionCategory.GENERIC: _cyclic(MotionCategory.GENERIC),
}


def phase_descriptor(category: MotionCategory, index: int, frame_count: int) -> str:
    """Return the motion phrase for one frame of ``category``."""
    return DESCRIPTORS[category](index, frame_count, progress_fraction(index, frame_count))


def frame_prompt(base_prompt: str, category: MotionCategory, index: int, frame_count: int) -> str:
    descriptor = phase_descriptor(category, index, frame_count)
    return f"{base_prompt.strip()}, {descriptor}, frame {index + 1} of {frame_count}, {CONSISTENCY_SUFFIX}"


def plan(base_prompt: str, frame_count: int, category: MotionCategory) -> List[FrameSpec]:
    """Produce the ordered frame plan; a pure function of its arguments.

    ``frame_count`` and ``category`` are expected to be validated by the caller.
    """
    return [
        FrameSpec(
            index=index,
            prompt_text=frame_prompt(base_prompt, category, index, frame_count),
            progress_fraction=progress_fraction(index, frame_count),
        )
        for index in range(frame_count)
    ]


__all__ = ["CONSISTENCY_SUFFIX", "PHASE_TABLES", "frame_prompt", "phase_descriptor", "plan", "round_half_up"]
