"""Ordered chain of image backends tried one after another."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..errors import BackendError, BackendUnavailableError
from .base import ImageBackend

logger = logging.getLogger(__name__)


class FallbackImageBackend:
    """Tries each backend in order and returns the first image produced.

    The chain itself satisfies :class:`ImageBackend`, so the materializer
    never knows how many alternatives stand behind it.
    """

    def __init__(self, backends: Sequence[ImageBackend]) -> None:
        if not backends:
            raise BackendUnavailableError("No image backend configured.", backend="fallback")
        self._backends: List[ImageBackend] = list(backends)
        self.name = ">".join(backend.name for backend in self._backends)

    @property
    def backends(self) -> List[ImageBackend]:
        return list(self._backends)

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        failures: List[str] = []
        for backend in self._backends:
            try:
                return backend.generate(prompt, reference_images)
            except BackendError as exc:
                logger.warning("Backend %s failed, trying next: %s", backend.name, exc)
                failures.append(str(exc))
        raise BackendError("All backends failed: " + " | ".join(failures), backend=self.name)
