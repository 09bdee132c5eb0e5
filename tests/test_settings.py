"""Tests for encoding defaults and presets."""

from __future__ import annotations

import unittest

from animgen.sequence.settings import get_preset, list_presets, resolve_defaults
from animgen.types import GifSettings


class ResolveDefaultsTest(unittest.TestCase):
    def test_buckets(self) -> None:
        expectations = {
            2: GifSettings(800, 90),
            3: GifSettings(800, 90),
            4: GifSettings(600, 85),
            5: GifSettings(600, 85),
            6: GifSettings(400, 80),
            8: GifSettings(400, 80),
            9: GifSettings(300, 75),
            20: GifSettings(300, 75),
        }
        for count, expected in expectations.items():
            with self.subTest(count=count):
                self.assertEqual(resolve_defaults(count), expected)


class PresetTest(unittest.TestCase):
    def test_known_presets(self) -> None:
        social = get_preset("social")
        self.assertEqual((social.frame_count, social.width, social.height, social.delay_ms, social.quality), (8, 512, 512, 300, 75))
        presentation = get_preset("Presentation")
        self.assertEqual((presentation.width, presentation.height, presentation.delay_ms), (800, 600, 600))
        website = get_preset("website")
        self.assertEqual((website.frame_count, website.width, website.quality), (6, 400, 80))

    def test_unknown_preset_is_general(self) -> None:
        self.assertEqual(get_preset("billboard").name, "general")
        self.assertEqual(get_preset(None).name, "general")

    def test_listing_order(self) -> None:
        self.assertEqual([preset.name for preset in list_presets()], ["social", "presentation", "website", "general"])


if __name__ == "__main__":
    unittest.main()
