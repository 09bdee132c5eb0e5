"""Encoding defaults and named output presets."""

from __future__ import annotations

from typing import Dict, List, Tuple

from ..types import GifSettings, Preset

# (max frame count, delay ms, quality). Fewer frames can afford a longer
# display time and a richer palette; long sequences get smaller and faster.
_FRAME_BUCKETS: Tuple[Tuple[int, int, int], ...] = (
    (3, 800, 90),
    (5, 600, 85),
    (8, 400, 80),
)
_MANY_FRAMES = GifSettings(delay_ms=300, quality=75)

DEFAULT_PRESET = "general"

PRESETS: Dict[str, Preset] = {
    "social": Preset("social", frame_count=8, width=512, height=512, delay_ms=300, quality=75),
    "presentation": Preset("presentation", frame_count=5, width=800, height=600, delay_ms=600, quality=85),
    "website": Preset("website", frame_count=6, width=400, height=400, delay_ms=400, quality=80),
    DEFAULT_PRESET: Preset(DEFAULT_PRESET, frame_count=5, width=512, height=512, delay_ms=500, quality=80),
}


def resolve_defaults(frame_count: int) -> GifSettings:
    """Pick the delay/quality pair for a sequence of ``frame_count`` frames."""
    for max_frames, delay_ms, quality in _FRAME_BUCKETS:
        if frame_count <= max_frames:
            return GifSettings(delay_ms=delay_ms, quality=quality)
    return _MANY_FRAMES


def get_preset(name: str | None) -> Preset:
    """Return the named preset, falling back to ``general`` for unknown names."""
    key = (name or DEFAULT_PRESET).strip().lower()
    return PRESETS.get(key, PRESETS[DEFAULT_PRESET])


def list_presets() -> List[Preset]:
    return list(PRESETS.values())


__all__ = ["DEFAULT_PRESET", "PRESETS", "get_preset", "list_presets", "resolve_defaults"]
