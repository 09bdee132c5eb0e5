"""Per-frame image storage backed by the local file system."""

from __future__ import annotations

import shutil
from io import BytesIO
from pathlib import Path
from typing import List

from PIL import Image, UnidentifiedImageError

from ..errors import StorageError
from ..utils.files import atomic_write, ensure_dir, read_binary

_FORMAT_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif"}


def sniff_extension(data: bytes, default: str = "png") -> str:
    """Return the file extension matching the image header of ``data``."""
    try:
        with Image.open(BytesIO(data)) as image:
            fmt = (image.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return default
    return _FORMAT_EXTENSIONS.get(fmt, fmt.lower() or default)


class FrameStore:
    """Writes each frame once under ``<root>/<run_id>/`` and reads it back."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def frame_key(run_id: str, index: int, *, prefix: str = "frame") -> str:
        return f"{run_id}/{prefix}_{index:02d}"

    def run_dir(self, run_id: str) -> Path:
        return self._root / run_id

    def write(self, key: str, data: bytes) -> Path:
        """Persist ``data`` atomically and return its location."""
        target = self._root / f"{key}.{sniff_extension(data)}"
        try:
            return atomic_write(target, data)
        except OSError as exc:
            raise StorageError(f"Failed to store frame {key}: {exc}") from exc

    def read(self, handle: str | Path) -> bytes:
        try:
            return read_binary(handle)
        except OSError as exc:
            raise StorageError(f"Failed to read frame {handle}: {exc}") from exc

    def remove(self, handle: str | Path) -> None:
        try:
            Path(handle).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to remove frame {handle}: {exc}") from exc

    def run_files(self, run_id: str) -> List[Path]:
        """Files currently stored for ``run_id``."""
        directory = self.run_dir(run_id)
        if not directory.is_dir():
            return []
        return sorted(path for path in directory.iterdir() if path.is_file())

    def remove_run(self, run_id: str) -> None:
        """Drop the run directory once it no longer holds any frame."""
        directory = self.run_dir(run_id)
        if directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()

    def clear(self) -> int:
        """Delete every stored frame; returns the number of files removed."""
        if not self._root.exists():
            return 0
        removed = sum(1 for path in self._root.rglob("*") if path.is_file())
        shutil.rmtree(self._root)
        ensure_dir(self._root)
        return removed
