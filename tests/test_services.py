"""Tests for the backend chain, its factory and the placeholder renderer."""

from __future__ import annotations

import base64
import unittest
from io import BytesIO
from types import SimpleNamespace
from unittest import mock

import requests
from PIL import Image

from animgen.config import PipelineConfig
from animgen.errors import BackendError, BackendUnavailableError
from animgen.services.factory import build_analyzer, build_backend
from animgen.services.fallback import FallbackImageBackend
from animgen.services.gemini import GeminiImageClient
from animgen.services.openai_images import OpenAIImageClient
from animgen.services.placeholder import PlaceholderImageBackend
from animgen.services.stability import StabilityImageClient
from tests.support import FailingBackend, StubBackend, png_bytes


class FallbackImageBackendTest(unittest.TestCase):
    def test_first_success_wins(self) -> None:
        broken = FailingBackend(BackendError("quota", backend="broken"))
        stub = StubBackend()
        chain = FallbackImageBackend([broken, stub])

        data = chain.generate("a fox, frame 1 of 2")

        self.assertEqual(chain.name, "broken>stub")
        self.assertEqual(broken.calls, 1)
        self.assertEqual(stub.calls, [0])
        self.assertTrue(data.startswith(b"\x89PNG"))

    def test_all_failures_are_reported(self) -> None:
        chain = FallbackImageBackend(
            [
                FailingBackend(BackendError("quota", backend="one")),
                FailingBackend(BackendUnavailableError("no key", backend="two")),
            ]
        )
        with self.assertRaises(BackendError) as ctx:
            chain.generate("a fox")
        self.assertIn("[one] quota", str(ctx.exception))
        self.assertIn("[two] no key", str(ctx.exception))

    def test_empty_chain_is_rejected(self) -> None:
        with self.assertRaises(BackendUnavailableError):
            FallbackImageBackend([])


class BuildBackendTest(unittest.TestCase):
    def test_mock_mode_uses_placeholder(self) -> None:
        backend = build_backend(PipelineConfig(enable_mock_generation=True, google_api_key="key"))
        self.assertIsInstance(backend, PlaceholderImageBackend)

    def test_no_keys_raises(self) -> None:
        with self.assertRaises(BackendUnavailableError):
            build_backend(PipelineConfig())

    def test_single_key_returns_client(self) -> None:
        self.assertIsInstance(build_backend(PipelineConfig(openai_api_key="sk")), OpenAIImageClient)

    def test_chain_order(self) -> None:
        backend = build_backend(
            PipelineConfig(
                google_api_key="g",
                openai_api_key="o",
                stability_api_key="s",
                placeholder_fallback=True,
            )
        )
        self.assertIsInstance(backend, FallbackImageBackend)
        self.assertEqual(backend.name, "gemini>openai>stability>placeholder")

    def test_analyzer_needs_google_key(self) -> None:
        with self.assertRaises(BackendUnavailableError):
            build_analyzer(PipelineConfig())
        self.assertIsInstance(build_analyzer(PipelineConfig(google_api_key="g")), GeminiImageClient)


class PlaceholderImageBackendTest(unittest.TestCase):
    def test_renders_deterministic_png(self) -> None:
        backend = PlaceholderImageBackend(width=120, height=90)
        first = backend.generate("a fox, center position, frame 1 of 3")
        again = backend.generate("a fox, center position, frame 1 of 3")
        other = backend.generate("a fox, slightly left, frame 2 of 3")

        self.assertEqual(first, again)
        self.assertNotEqual(first, other)
        with Image.open(BytesIO(first)) as image:
            self.assertEqual(image.format, "PNG")
            self.assertEqual(image.size, (120, 90))


class GeminiImageClientTest(unittest.TestCase):
    def _response(self, *parts):
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])

    def test_returns_inline_image_bytes(self) -> None:
        image = png_bytes((1, 2, 3))
        client = mock.Mock()
        client.models.generate_content.return_value = self._response(
            SimpleNamespace(text="here you go", inline_data=None),
            SimpleNamespace(text=None, inline_data=SimpleNamespace(data=image)),
        )
        gemini = GeminiImageClient(client=client)

        self.assertEqual(gemini.generate("a fox"), image)
        kwargs = client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-2.5-flash-image")
        self.assertEqual(kwargs["contents"], ["a fox"])

    def test_missing_image_is_backend_error(self) -> None:
        client = mock.Mock()
        client.models.generate_content.return_value = self._response(SimpleNamespace(text="sorry", inline_data=None))
        with self.assertRaises(BackendError):
            GeminiImageClient(client=client).generate("a fox")

    def test_missing_key_is_unavailable(self) -> None:
        with self.assertRaises(BackendUnavailableError):
            GeminiImageClient().generate("a fox")

    def test_rejects_unknown_aspect_ratio(self) -> None:
        with self.assertRaises(ValueError):
            GeminiImageClient(api_key="g", aspect_ratio="7:3")
        self.assertEqual(GeminiImageClient(api_key="g", aspect_ratio="16:9").resolution, "1344x768")


class OpenAIImageClientTest(unittest.TestCase):
    def test_decodes_b64_payload(self) -> None:
        image = png_bytes((9, 9, 9))
        client = mock.Mock()
        client.images.generate.return_value = SimpleNamespace(
            data=[SimpleNamespace(b64_json=base64.b64encode(image).decode("ascii"))]
        )
        self.assertEqual(OpenAIImageClient(client=client).generate("a fox"), image)

    def test_reference_images_unsupported(self) -> None:
        with self.assertRaises(BackendError):
            OpenAIImageClient(client=mock.Mock()).generate("a fox", ["ref.png"])


class StabilityImageClientTest(unittest.TestCase):
    def test_decodes_first_artifact(self) -> None:
        image = png_bytes((4, 5, 6))
        session = mock.Mock()
        session.post.return_value.json.return_value = {"artifacts": [{"base64": base64.b64encode(image).decode()}]}
        client = StabilityImageClient(api_key="s", session=session)

        self.assertEqual(client.generate("a fox"), image)
        url = session.post.call_args.args[0]
        self.assertTrue(url.endswith("/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"))

    def test_http_failure_is_backend_error(self) -> None:
        session = mock.Mock()
        session.post.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(BackendError):
            StabilityImageClient(api_key="s", session=session).generate("a fox")


if __name__ == "__main__":
    unittest.main()
