"""Stub backends and small image fixtures shared by the test modules."""

from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import Image

from animgen.config import PipelineConfig
from animgen.errors import BackendError, StorageError
from animgen.sequence.storage import FrameStore

_FRAME_MARKER = re.compile(r"frame (\d+) of (\d+)")


def color_for(index: int) -> Tuple[int, int, int]:
    """Distinct solid colour per frame index."""
    return (index * 53) % 256, (index * 97 + 40) % 256, (index * 151 + 80) % 256


def png_bytes(color: Tuple[int, int, int], size: Tuple[int, int] = (32, 24), fmt: str = "PNG") -> bytes:
    output = BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


def write_png(path: Path, color: Tuple[int, int, int], size: Tuple[int, int] = (32, 24)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(png_bytes(color, size))
    return path


def frame_index(prompt: str) -> int:
    match = _FRAME_MARKER.search(prompt)
    return int(match.group(1)) - 1 if match else 0


class StubBackend:
    """Returns a solid PNG per frame; selected indices fail or flake."""

    name = "stub"

    def __init__(
        self,
        fail_indices: Iterable[int] = (),
        flaky: Optional[Dict[int, int]] = None,
        payloads: Optional[Dict[int, bytes]] = None,
        size: Tuple[int, int] = (32, 24),
    ) -> None:
        self.fail_indices = set(fail_indices)
        self.flaky = dict(flaky or {})
        self.payloads = dict(payloads or {})
        self.size = size
        self.calls: List[int] = []
        self.prompts: List[str] = []
        self.references: List[Tuple[str, ...]] = []

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        index = frame_index(prompt)
        self.calls.append(index)
        self.prompts.append(prompt)
        self.references.append(tuple(reference_images))
        if index in self.fail_indices:
            raise BackendError(f"frame {index} rejected", backend=self.name)
        if self.flaky.get(index, 0) > 0:
            self.flaky[index] -= 1
            raise BackendError(f"frame {index} timed out", backend=self.name)
        if index in self.payloads:
            return self.payloads[index]
        return png_bytes(color_for(index), self.size)


class FailingBackend:
    name = "broken"

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        self.calls += 1
        raise self.error


class UnreadableFrameStore(FrameStore):
    """Frame store whose reads fail for the given file stems, e.g. ``frame_01``."""

    def __init__(self, root: Path, unreadable: Iterable[str]) -> None:
        super().__init__(root)
        self.unreadable = set(unreadable)

    def read(self, handle) -> bytes:
        if Path(handle).stem in self.unreadable:
            raise StorageError(f"read failed: {handle}")
        return super().read(handle)


def make_config(root: Path, **overrides) -> PipelineConfig:
    """Config rooted in a temporary directory with all pacing delays disabled."""
    values = dict(
        output_dir=str(root / "output"),
        runs_dir=str(root / "runs"),
        max_retries=0,
        retry_delay_sec=0.0,
        request_interval_sec=0.0,
    )
    values.update(overrides)
    return PipelineConfig(**values)
