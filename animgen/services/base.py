"""Base service abstractions shared by the image backends."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class ImageBackend(Protocol):
    """String in, image bytes out; failures raise :class:`~animgen.errors.BackendError`."""

    name: str

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        ...


class ImageAnalyzer(Protocol):
    """Protocol for services able to describe an existing image."""

    def describe_image(self, image_path: str, prompt: str) -> str:
        ...
