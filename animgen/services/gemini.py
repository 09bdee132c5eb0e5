"""Gemini image client: text-to-image, editing, composition and style transfer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import BackendError, BackendUnavailableError
from ..utils.files import guess_mime_type, read_binary

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_ANALYSIS_MODEL = "gemini-2.5-flash"
DEFAULT_ANALYSIS_PROMPT = "Analyze this image and describe what you see"

# Aspect ratio -> native output resolution.
SUPPORTED_ASPECT_RATIOS = {
    "1:1": "1024x1024",
    "2:3": "832x1248",
    "3:2": "1248x832",
    "3:4": "864x1184",
    "4:3": "1184x864",
    "4:5": "896x1152",
    "5:4": "1152x896",
    "9:16": "768x1344",
    "16:9": "1344x768",
    "21:9": "1536x672",
}


class GeminiImageClient:
    """Calls the Gemini ``generate_content`` API and returns raw image bytes.

    Reference images are sent as inline parts ahead of the prompt, which is
    how the API performs editing (one image) and composition or style
    transfer (several images).
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_IMAGE_MODEL,
        analysis_model: str = DEFAULT_ANALYSIS_MODEL,
        aspect_ratio: str = "1:1",
        timeout: float = 30,
        client: Any = None,
    ) -> None:
        if aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError(
                f"Unsupported aspect ratio: {aspect_ratio}. "
                f"Supported: {', '.join(SUPPORTED_ASPECT_RATIOS)}"
            )
        self._api_key = api_key
        self._model = model
        self._analysis_model = analysis_model
        self._aspect_ratio = aspect_ratio
        self._timeout = timeout
        self._client = client

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        """Text-to-image, or image editing/composition when references are given."""
        contents: List[Any] = [self._image_part(path) for path in reference_images]
        contents.append(prompt)
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=self._aspect_ratio),
        )
        response = self._call(model=self._model, contents=contents, config=config)

        for part in self._parts(response):
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return bytes(inline.data)
            if getattr(part, "text", None):
                logger.debug("Gemini returned text alongside the image: %s", part.text)
        raise BackendError("No image data found in response", backend=self.name)

    def edit_image(self, image_path: str, edit_prompt: str) -> bytes:
        return self.generate(edit_prompt, [image_path])

    def compose(self, image_paths: Sequence[str], composition_prompt: str) -> bytes:
        return self.generate(composition_prompt, list(image_paths))

    def style_transfer(self, source_path: str, style_path: str, style_prompt: str) -> bytes:
        """Re-render ``source_path`` in the look of ``style_path``."""
        enhanced = (
            f"Apply the style from the reference image to the main image. {style_prompt}. "
            "Maintain the main subject but apply the new style and design elements."
        )
        return self.generate(enhanced, [source_path, style_path])

    def describe_image(self, image_path: str, prompt: str = DEFAULT_ANALYSIS_PROMPT) -> str:
        """Return a textual analysis of an existing image."""
        response = self._call(
            model=self._analysis_model,
            contents=[self._image_part(image_path), prompt],
            config=None,
        )
        text = getattr(response, "text", None)
        if not text:
            raise BackendError("Image analysis returned no text", backend=self.name)
        return text.strip()

    @property
    def resolution(self) -> str:
        return SUPPORTED_ASPECT_RATIOS[self._aspect_ratio]

    def _call(self, *, model: str, contents: List[Any], config: Optional[types.GenerateContentConfig]):
        client = self._resolve_client()
        try:
            return client.models.generate_content(model=model, contents=contents, config=config)
        except genai_errors.APIError as exc:
            raise BackendError(f"Gemini call failed ({exc.code}): {exc.message}", backend=self.name) from exc

    def _resolve_client(self):
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise BackendUnavailableError("Google API key is missing; cannot call Gemini.", backend=self.name)
        self._client = genai.Client(
            api_key=self._api_key,
            http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
        )
        return self._client

    def _image_part(self, path: str) -> types.Part:
        source = Path(path)
        if not source.is_file():
            raise BackendError(f"Reference image file not found: {path}", backend=self.name)
        return types.Part.from_bytes(data=read_binary(source), mime_type=guess_mime_type(source))

    @staticmethod
    def _parts(response) -> Iterable[Any]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return []
        content = getattr(candidates[0], "content", None)
        return getattr(content, "parts", None) or []
