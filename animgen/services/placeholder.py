"""Local Pillow renderer used for mock runs, last-resort fallback and gap filling."""

from __future__ import annotations

import re
import textwrap
from io import BytesIO
from typing import Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..utils.files import sha256_hex

_FRAME_MARKER = re.compile(r"frame (\d+) of (\d+)")


class PlaceholderImageBackend:
    """Draws a deterministic card carrying the prompt text.

    The background colour is derived from the prompt hash, so two different
    frame prompts never produce identical images while reruns stay stable.
    """

    name = "placeholder"

    def __init__(self, width: int = 512, height: int = 512, wrap_chars: int = 36) -> None:
        self._width = width
        self._height = height
        self._wrap_chars = wrap_chars
        self._font = ImageFont.load_default()

    def generate(self, prompt: str, reference_images: Sequence[str] = ()) -> bytes:
        background = self._colour_for(prompt)
        image = Image.new("RGB", (self._width, self._height), background)
        draw = ImageDraw.Draw(image)
        foreground = (255, 255, 255) if sum(background) < 384 else (20, 20, 20)

        lines = textwrap.wrap(prompt, width=self._wrap_chars)[:12]
        line_height = self._line_height(draw)
        top = max(10, (self._height - line_height * len(lines)) // 2)
        for offset, line in enumerate(lines):
            self._draw_centered(draw, line, top + offset * line_height, foreground)

        marker = _FRAME_MARKER.search(prompt)
        if marker:
            label = f"Frame {marker.group(1)}/{marker.group(2)}"
            self._draw_centered(draw, label, self._height - 50, foreground)

        output = BytesIO()
        image.save(output, format="PNG")
        return output.getvalue()

    @staticmethod
    def _colour_for(prompt: str) -> Tuple[int, int, int]:
        digest = sha256_hex(prompt.encode("utf-8"))
        return int(digest[0:2], 16), int(digest[2:4], 16), int(digest[4:6], 16)

    def _line_height(self, draw: ImageDraw.ImageDraw) -> int:
        left, top, right, bottom = draw.textbbox((0, 0), "Ag", font=self._font)
        return (bottom - top) + 6

    def _draw_centered(self, draw: ImageDraw.ImageDraw, text: str, y: int, fill: Tuple[int, int, int]) -> None:
        left, _, right, _ = draw.textbbox((0, 0), text, font=self._font)
        x = max(0, (self._width - (right - left)) // 2)
        draw.text((x, y), text, font=self._font, fill=fill)
