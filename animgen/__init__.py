"""animgen package.

This package turns a single text prompt into an animated GIF by planning
per-frame prompts, generating each frame with an image backend and
encoding the results through a small orchestrated pipeline.
"""

from .pipeline import AnimatedGifGenerator  # noqa: F401
from .types import AnimationRequest, MotionCategory, SequenceResult  # noqa: F401

__all__ = ["AnimatedGifGenerator", "AnimationRequest", "MotionCategory", "SequenceResult"]
