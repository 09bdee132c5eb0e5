"""OpenAI Images (DALL-E) client used as a secondary backend."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from openai import OpenAI, OpenAIError

from ..errors import BackendError, BackendUnavailableError
from ..utils.files import b64decode_to_bytes


class OpenAIImageClient:
    """Text-to-image through the OpenAI Images API."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        quality: str = "standard",
        timeout: float = 60,
        client: Any = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._size = size
        self._quality = quality
        self._timeout = timeout
        self._client = client

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        if reference_images:
            raise BackendError("Reference images are not supported by this backend.", backend=self.name)

        client = self._resolve_client()
        try:
            response = client.images.generate(
                model=self._model,
                prompt=prompt,
                n=1,
                size=self._size,
                quality=self._quality,
                response_format="b64_json",
            )
        except OpenAIError as exc:
            raise BackendError(f"Image generation failed: {exc}", backend=self.name) from exc

        items = getattr(response, "data", None) or []
        payload = getattr(items[0], "b64_json", None) if items else None
        if not payload:
            raise BackendError("Response missing b64_json image payload.", backend=self.name)
        return b64decode_to_bytes(payload)

    def _resolve_client(self):
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise BackendUnavailableError("OpenAI API key is missing; cannot call service.", backend=self.name)
        self._client = OpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client
