"""Builds the backend chain described by a :class:`PipelineConfig`."""

from __future__ import annotations

from typing import List

from ..config import PipelineConfig
from ..errors import BackendUnavailableError
from .base import ImageAnalyzer, ImageBackend
from .fallback import FallbackImageBackend
from .gemini import GeminiImageClient
from .openai_images import OpenAIImageClient
from .placeholder import PlaceholderImageBackend
from .stability import StabilityImageClient


def build_backend(config: PipelineConfig) -> ImageBackend:
    """Return the configured backend: mocks, or Gemini > OpenAI > Stability > placeholder."""
    if config.enable_mock_generation:
        return PlaceholderImageBackend()

    chain: List[ImageBackend] = []
    if config.google_api_key:
        chain.append(
            GeminiImageClient(
                api_key=config.google_api_key,
                model=config.gemini_model,
                analysis_model=config.analysis_model,
                aspect_ratio=config.aspect_ratio,
                timeout=config.api_timeout_sec,
            )
        )
    if config.openai_api_key:
        chain.append(OpenAIImageClient(api_key=config.openai_api_key, timeout=config.api_timeout_sec))
    if config.stability_api_key:
        chain.append(StabilityImageClient(api_key=config.stability_api_key, timeout=config.api_timeout_sec))
    if config.placeholder_fallback:
        chain.append(PlaceholderImageBackend())

    if not chain:
        raise BackendUnavailableError(
            "No image backend available. Set GOOGLE_API_KEY (or OPENAI_API_KEY / STABILITY_API_KEY), "
            "or enable ANIMGEN_ENABLE_MOCKS.",
            backend="none",
        )
    if len(chain) == 1:
        return chain[0]
    return FallbackImageBackend(chain)


def build_analyzer(config: PipelineConfig) -> ImageAnalyzer:
    """Gemini client used for the image analysis command."""
    if not config.google_api_key:
        raise BackendUnavailableError("GOOGLE_API_KEY is required for image analysis.", backend="gemini")
    return GeminiImageClient(
        api_key=config.google_api_key,
        model=config.gemini_model,
        analysis_model=config.analysis_model,
        aspect_ratio=config.aspect_ratio,
        timeout=config.api_timeout_sec,
    )
