"""Stability AI SDXL REST client used as a tertiary backend."""

from __future__ import annotations

from typing import Optional, Sequence

import requests

from ..errors import BackendError, BackendUnavailableError
from ..utils.files import b64decode_to_bytes

STABILITY_API_URL = "https://api.stability.ai"
SDXL_ENGINE = "stable-diffusion-xl-1024-v1-0"


class StabilityImageClient:
    """Text-to-image through the Stability v1 generation endpoint."""

    name = "stability"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        engine: str = SDXL_ENGINE,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url or STABILITY_API_URL
        self._engine = engine
        self._timeout = timeout
        self._session = session or requests.Session()

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        if reference_images:
            raise BackendError("Reference images are not supported by this backend.", backend=self.name)
        if not self._api_key:
            raise BackendUnavailableError("Stability API key is missing; cannot call service.", backend=self.name)

        payload = {
            "text_prompts": [{"text": prompt, "weight": 1}],
            "cfg_scale": 7,
            "height": 1024,
            "width": 1024,
            "samples": 1,
            "steps": 30,
        }
        data = self._post_json(self._resolve_endpoint(f"v1/generation/{self._engine}/text-to-image"), payload)

        artifacts = data.get("artifacts") if isinstance(data, dict) else None
        encoded = artifacts[0].get("base64") if artifacts else None
        if not encoded:
            raise BackendError(f"Response missing image artifact: {str(data)[:200]}", backend=self.name)
        return b64decode_to_bytes(encoded)

    def _resolve_endpoint(self, path: str) -> str:
        base = self._api_url.rstrip("/")
        return f"{base}/{path.lstrip('/')}"

    def _post_json(self, url: str, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise BackendError(f"Request failed: {exc}", backend=self.name) from exc
        except ValueError as exc:
            raise BackendError(f"Response was not valid JSON: {exc}", backend=self.name) from exc
