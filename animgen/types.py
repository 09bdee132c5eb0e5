"""Core data models used across the animation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .errors import InvalidRequestError

MIN_FRAMES = 2
MAX_FRAMES = 20
MIN_DELAY_MS = 100
MAX_DELAY_MS = 2000
MIN_QUALITY = 1
MAX_QUALITY = 100

AUTO_CATEGORY = "auto"


class MotionCategory(str, Enum):
    """Discrete classes of animated movement."""

    CYCLIC_LIMB = "cyclic-limb"
    WING_BEAT = "wing-beat"
    DANCE_POSE = "dance-pose"
    PROGRESSIVE_TRANSFORM = "progressive-transform"
    ROTATIONAL = "rotational"
    WAVE = "wave"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: Union[str, "MotionCategory"]) -> "MotionCategory":
        """Resolve a category from its value, enum name, or legacy alias."""
        if isinstance(value, MotionCategory):
            return value
        key = value.strip().lower().replace("_", "-")
        for member in cls:
            if key == member.value:
                return member
        if key in CATEGORY_ALIASES:
            return CATEGORY_ALIASES[key]
        raise ValueError(f"Unknown motion category: {value!r}")


CATEGORY_ALIASES = {
    "walking": MotionCategory.CYCLIC_LIMB,
    "flying": MotionCategory.WING_BEAT,
    "dancing": MotionCategory.DANCE_POSE,
    "transformation": MotionCategory.PROGRESSIVE_TRANSFORM,
    "rotating": MotionCategory.ROTATIONAL,
    "flowing": MotionCategory.WAVE,
    "general": MotionCategory.GENERIC,
}


class GapPolicy(str, Enum):
    """What the assembler does with frames that failed to materialize."""

    OMIT = "omit"
    PLACEHOLDER = "placeholder"


class FrameStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RunOutcome(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class AnimationRequest:
    """Everything the caller asks for in one animation run."""

    base_prompt: str
    frame_count: int = 5
    motion_category: Union[MotionCategory, str] = AUTO_CATEGORY
    width: int = 512
    height: int = 512
    delay_ms: Optional[int] = None
    quality: Optional[int] = None
    loop: bool = True
    loop_count: int = 0
    keep_frames: bool = False
    reference_images: Tuple[str, ...] = ()
    gap_policy: GapPolicy = GapPolicy.OMIT

    def validate(self) -> None:
        """Raise :class:`InvalidRequestError` listing every violated bound."""
        errors: List[str] = []

        if not isinstance(self.base_prompt, str) or not self.base_prompt.strip():
            errors.append("Prompt is required and must be a non-empty string")
        if not _is_int(self.frame_count) or not MIN_FRAMES <= self.frame_count <= MAX_FRAMES:
            errors.append(f"Frame count must be between {MIN_FRAMES} and {MAX_FRAMES}, got {self.frame_count!r}")
        if self.delay_ms is not None and (
            not _is_int(self.delay_ms) or not MIN_DELAY_MS <= self.delay_ms <= MAX_DELAY_MS
        ):
            errors.append(f"Delay must be between {MIN_DELAY_MS}ms and {MAX_DELAY_MS}ms, got {self.delay_ms!r}")
        if self.quality is not None and (
            not _is_int(self.quality) or not MIN_QUALITY <= self.quality <= MAX_QUALITY
        ):
            errors.append(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {self.quality!r}")
        for label, value in (("Width", self.width), ("Height", self.height)):
            if not _is_int(value) or value <= 0:
                errors.append(f"{label} must be a positive integer, got {value!r}")
        if not _is_int(self.loop_count) or self.loop_count < 0:
            errors.append(f"Loop count must be zero (infinite) or positive, got {self.loop_count!r}")
        if self.motion_category != AUTO_CATEGORY:
            try:
                MotionCategory.parse(self.motion_category)
            except (ValueError, AttributeError):
                errors.append(f"Unknown motion category: {self.motion_category!r}")
        for reference in self.reference_images:
            if not Path(reference).is_file():
                errors.append(f"Reference image not found: {reference}")

        if errors:
            raise InvalidRequestError(errors)

    @property
    def loop_value(self) -> Optional[int]:
        """Loop count handed to the encoder; ``None`` plays the animation once."""
        return self.loop_count if self.loop else None


@dataclass(frozen=True, slots=True)
class FrameSpec:
    """One planned frame: its position and the prompt that describes it."""

    index: int
    prompt_text: str
    progress_fraction: float


@dataclass(frozen=True, slots=True)
class FrameArtifact:
    """Outcome of materializing (or gap-filling) a single frame."""

    index: int
    status: FrameStatus
    image_location: Optional[Path] = None
    error: Optional[str] = None
    attempts: int = 0
    placeholder: bool = False

    @property
    def ok(self) -> bool:
        return self.status is FrameStatus.SUCCESS


@dataclass(frozen=True, slots=True)
class GifSettings:
    """Encoding parameters derived from the frame count."""

    delay_ms: int
    quality: int


@dataclass(frozen=True, slots=True)
class Preset:
    """Named parameter bundle for a common output target."""

    name: str
    frame_count: int
    width: int
    height: int
    delay_ms: int
    quality: int


@dataclass(slots=True)
class SequenceResult:
    """What a pipeline run hands back to the caller."""

    run_id: str
    category: Optional[MotionCategory]
    frame_artifacts: List[FrameArtifact] = field(default_factory=list)
    encoded_output: Optional[Path] = None
    cancelled: bool = False
    frames_kept: bool = True
    report_path: Optional[Path] = None

    @property
    def succeeded(self) -> List[FrameArtifact]:
        return [artifact for artifact in self.frame_artifacts if artifact.ok]

    @property
    def failed(self) -> List[FrameArtifact]:
        return [artifact for artifact in self.frame_artifacts if not artifact.ok]

    @property
    def outcome(self) -> RunOutcome:
        if self.cancelled:
            return RunOutcome.CANCELLED
        if self.encoded_output is None or not self.succeeded:
            return RunOutcome.FAILED
        if self.failed:
            return RunOutcome.PARTIAL
        return RunOutcome.COMPLETE

    def summary(self) -> str:
        total = len(self.frame_artifacts)
        return f"{self.outcome.value}: {len(self.succeeded)}/{total} frames"


@dataclass(slots=True)
class RunState:
    """Mutable state passed between nodes."""

    run_id: str
    request: AnimationRequest
    category: Optional[MotionCategory] = None
    plan: List[FrameSpec] = field(default_factory=list)
    artifacts: List[FrameArtifact] = field(default_factory=list)
    assembled_frames: List[FrameArtifact] = field(default_factory=list)
    output_path: Optional[Path] = None
    cancelled: bool = False
    frames_kept: bool = True
    error: Optional[Exception] = None
    report_path: Optional[Path] = None

    def to_result(self) -> SequenceResult:
        return SequenceResult(
            run_id=self.run_id,
            category=self.category,
            frame_artifacts=list(self.artifacts),
            encoded_output=self.output_path,
            cancelled=self.cancelled,
            frames_kept=self.frames_kept,
            report_path=self.report_path,
        )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
