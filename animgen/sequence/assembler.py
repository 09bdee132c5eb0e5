"""Encodes ordered still frames into one animated GIF."""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import Image, ImageChops, ImageOps, UnidentifiedImageError

from ..errors import EmptySequenceError, StorageError
from ..services.base import ImageBackend
from ..types import FrameArtifact, FrameSpec, FrameStatus, GapPolicy
from ..utils.files import atomic_write
from .planner import round_half_up
from .storage import FrameStore

logger = logging.getLogger(__name__)

MIN_COLORS = 2
MAX_COLORS = 256


def colors_for_quality(quality: int) -> int:
    """Map a 1-100 quality value onto a GIF palette size."""
    return max(MIN_COLORS, min(MAX_COLORS, round_half_up(MAX_COLORS * quality / 100)))


def select_frames(
    artifacts: Sequence[FrameArtifact],
    policy: GapPolicy,
    *,
    frame_plan: Sequence[FrameSpec] = (),
    store: Optional[FrameStore] = None,
    placeholder_backend: Optional[ImageBackend] = None,
    run_id: str = "",
) -> List[FrameArtifact]:
    """Pick the frames that go into the animation, in index order.

    ``OMIT`` keeps successful frames only. ``PLACEHOLDER`` renders a stand-in
    for every failed index so the timing of the remaining frames is unchanged.
    A placeholder that cannot be stored leaves its index out.
    """
    ordered = sorted(artifacts, key=lambda artifact: artifact.index)
    if policy is GapPolicy.OMIT:
        return [artifact for artifact in ordered if artifact.ok]

    if store is None or placeholder_backend is None:
        raise ValueError("Placeholder gap filling needs a frame store and a placeholder backend.")

    prompts: Dict[int, str] = {frame.index: frame.prompt_text for frame in frame_plan}
    selected: List[FrameArtifact] = []
    for artifact in ordered:
        if artifact.ok:
            selected.append(artifact)
            continue
        prompt = prompts.get(artifact.index, f"missing frame {artifact.index + 1}")
        data = placeholder_backend.generate(prompt)
        try:
            location = store.write(FrameStore.frame_key(run_id, artifact.index, prefix="placeholder"), data)
        except StorageError as exc:
            logger.warning("Placeholder for frame %d not stored: %s", artifact.index + 1, exc)
            continue
        logger.info("Frame %d replaced by placeholder %s", artifact.index + 1, location)
        selected.append(
            FrameArtifact(
                index=artifact.index,
                status=FrameStatus.SUCCESS,
                image_location=location,
                error=None,
                attempts=artifact.attempts,
                placeholder=True,
            )
        )
    return selected


def fit_frame(data: bytes, size: Tuple[int, int], colors: int, label: str) -> Image.Image:
    """Decode, cover-fit and quantize one frame; undecodable data raises :class:`StorageError`."""
    try:
        with Image.open(BytesIO(data)) as source:
            fitted = ImageOps.fit(source.convert("RGB"), size, method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise StorageError(f"Frame {label} is not a decodable image: {exc}") from exc
    return fitted.quantize(colors=colors)


def load_frames(
    frames: Sequence[FrameArtifact],
    store: FrameStore,
    *,
    width: int,
    height: int,
    quality: int,
) -> Tuple[List[Tuple[FrameArtifact, Image.Image]], List[FrameArtifact]]:
    """Read and fit every frame in order.

    Returns the loaded ``(artifact, image)`` pairs and, separately, a failed
    artifact for each frame that could not be read or decoded.
    """
    colors = colors_for_quality(quality)
    loaded: List[Tuple[FrameArtifact, Image.Image]] = []
    unreadable: List[FrameArtifact] = []
    for artifact in frames:
        try:
            if not artifact.ok or artifact.image_location is None:
                raise StorageError(f"Frame {artifact.index + 1} has no stored image.")
            data = store.read(artifact.image_location)
            image = fit_frame(data, (width, height), colors, str(artifact.image_location))
        except StorageError as exc:
            logger.warning("Frame %d dropped before encoding: %s", artifact.index + 1, exc)
            unreadable.append(
                FrameArtifact(
                    index=artifact.index,
                    status=FrameStatus.FAILED,
                    error=str(exc),
                    attempts=artifact.attempts,
                )
            )
            continue
        loaded.append((artifact, image))
    return loaded, unreadable


def _same_pixels(first: Image.Image, second: Image.Image) -> bool:
    return ImageChops.difference(first.convert("RGB"), second.convert("RGB")).getbbox() is None


def _alternate_corner(run: Sequence[Image.Image]) -> List[Image.Image]:
    """Give identical frames one palette with a spare copy of the corner colour.

    The frames look the same but alternate between the two palette entries at
    pixel (0, 0), so the GIF writer keeps every one of them.
    """
    base = run[0]
    palette = base.getpalette() or []
    if len(palette) // 3 >= MAX_COLORS:
        base = base.convert("RGB").quantize(colors=MAX_COLORS - 1)
        palette = base.getpalette() or []
    corner = base.getpixel((0, 0))
    spare = len(palette) // 3
    palette = palette + palette[corner * 3 : corner * 3 + 3]

    frames: List[Image.Image] = []
    for position in range(len(run)):
        frame = base.copy()
        frame.putpalette(palette)
        if position % 2:
            frame.putpixel((0, 0), spare)
        frames.append(frame)
    return frames


def keep_repeated_frames(images: Sequence[Image.Image]) -> List[Image.Image]:
    """Rework runs of identical neighbours so none is merged into the previous frame."""
    result = list(images)
    start = 0
    while start < len(result):
        end = start + 1
        while end < len(result) and _same_pixels(result[end - 1], result[end]):
            end += 1
        if end - start > 1:
            result[start:end] = _alternate_corner(result[start:end])
        start = end
    return result


def write_gif(
    images: Sequence[Image.Image],
    *,
    delay_ms: int,
    loop: Optional[int],
    output_path: str | Path,
) -> Path:
    """Write fitted frames as one GIF, one frame per image; ``loop=None`` plays once."""
    if not images:
        raise EmptySequenceError("No frames to assemble.")
    frames = keep_repeated_frames(images)

    options = {
        "format": "GIF",
        "save_all": True,
        "append_images": frames[1:],
        "duration": delay_ms,
        "disposal": 2,
        "optimize": False,
    }
    if loop is not None:
        options["loop"] = loop

    buffer = BytesIO()
    frames[0].save(buffer, **options)
    try:
        target = atomic_write(output_path, buffer.getvalue())
    except OSError as exc:
        raise StorageError(f"Failed to write animation {output_path}: {exc}") from exc
    logger.info("Animation written: %s (%d frames, %dms)", target, len(frames), delay_ms)
    return target


def encode_gif(
    payloads: Iterable[Tuple[str, bytes]],
    *,
    width: int,
    height: int,
    delay_ms: int,
    quality: int,
    loop: Optional[int],
    output_path: str | Path,
) -> Path:
    """Fit, quantize and write raw image payloads."""
    colors = colors_for_quality(quality)
    images = [fit_frame(data, (width, height), colors, label) for label, data in payloads]
    return write_gif(images, delay_ms=delay_ms, loop=loop, output_path=output_path)


def assemble(
    frames: Sequence[FrameArtifact],
    *,
    width: int,
    height: int,
    delay_ms: int,
    quality: int,
    loop: Optional[int],
    output_path: str | Path,
    store: FrameStore,
) -> Path:
    """Encode successful frame artifacts in the order given.

    Frames that cannot be read are left out; :class:`EmptySequenceError` is
    raised when none can be.
    """
    if not frames:
        raise EmptySequenceError("No frames to assemble.")
    loaded, _ = load_frames(frames, store, width=width, height=height, quality=quality)
    if not loaded:
        raise EmptySequenceError("No readable frame left to assemble.")
    return write_gif(
        [image for _, image in loaded],
        delay_ms=delay_ms,
        loop=loop,
        output_path=output_path,
    )


def assemble_paths(
    paths: Sequence[str | Path],
    *,
    width: int,
    height: int,
    delay_ms: int,
    quality: int,
    loop: Optional[int],
    output_path: str | Path,
    store: Optional[FrameStore] = None,
) -> Path:
    """Encode existing image files, e.g. frames produced by another tool."""
    if not paths:
        raise EmptySequenceError("No frames to assemble.")
    reader = store or FrameStore(Path(output_path).parent)
    payloads = [(str(path), reader.read(path)) for path in paths]
    return encode_gif(
        payloads,
        width=width,
        height=height,
        delay_ms=delay_ms,
        quality=quality,
        loop=loop,
        output_path=output_path,
    )
