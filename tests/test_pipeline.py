"""Regression tests for the end-to-end generation pipeline."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from animgen.errors import BackendUnavailableError, EmptySequenceError, InvalidRequestError, StorageError
from animgen.pipeline import AnimatedGifGenerator
from animgen.sequence.materializer import CancelToken
from animgen.types import AnimationRequest, FrameStatus, GapPolicy, MotionCategory, RunOutcome
from tests.support import StubBackend, UnreadableFrameStore, make_config, png_bytes, write_png


class PipelineIntegrationTest(unittest.TestCase):
    """Covers the top-level pipeline behaviour."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.config = make_config(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _request(self, **overrides) -> AnimationRequest:
        values = dict(
            base_prompt="a cat walking",
            frame_count=4,
            motion_category=MotionCategory.CYCLIC_LIMB,
            width=64,
            height=64,
        )
        values.update(overrides)
        return AnimationRequest(**values)

    def test_pipeline_run(self) -> None:
        """Four successful frames become a four-frame GIF."""
        backend = StubBackend()
        result = AnimatedGifGenerator(config=self.config, backend=backend).run(self._request())

        self.assertEqual(backend.calls, [0, 1, 2, 3])
        self.assertIn("left foot forward", backend.prompts[0])
        self.assertIn("right foot forward", backend.prompts[2])
        self.assertIs(result.outcome, RunOutcome.COMPLETE)
        self.assertIs(result.category, MotionCategory.CYCLIC_LIMB)
        self.assertEqual([artifact.status for artifact in result.frame_artifacts], [FrameStatus.SUCCESS] * 4)
        self.assertIsNotNone(result.encoded_output)
        self.assertEqual(result.encoded_output.parent, self.config.gifs_path)
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 4)
            self.assertEqual(image.size, (64, 64))
            # Four frames fall in the 600ms bucket.
            self.assertEqual(image.info.get("duration"), 600)
            self.assertEqual(image.info.get("loop"), 0)

    def test_failed_frame_is_omitted(self) -> None:
        """A frame failing every attempt is dropped and the rest keep their order."""
        backend = StubBackend(fail_indices={2})
        result = AnimatedGifGenerator(config=self.config, backend=backend).run(self._request())

        self.assertEqual(backend.calls, [0, 1, 2, 3])
        self.assertEqual(
            [artifact.status for artifact in result.frame_artifacts],
            [FrameStatus.SUCCESS, FrameStatus.SUCCESS, FrameStatus.FAILED, FrameStatus.SUCCESS],
        )
        self.assertEqual([artifact.index for artifact in result.succeeded], [0, 1, 3])
        self.assertIs(result.outcome, RunOutcome.PARTIAL)
        self.assertEqual(result.summary(), "partial: 3/4 frames")
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 3)

    def test_fill_failed_keeps_frame_count(self) -> None:
        backend = StubBackend(fail_indices={2})
        result = AnimatedGifGenerator(config=self.config, backend=backend).run(
            self._request(gap_policy=GapPolicy.PLACEHOLDER)
        )
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 4)

    def test_auto_category_and_explicit_settings(self) -> None:
        backend = StubBackend()
        result = AnimatedGifGenerator(config=self.config, backend=backend).run(
            self._request(base_prompt="a coin spinning", motion_category="auto", delay_ms=150, quality=40, loop=False)
        )
        self.assertIs(result.category, MotionCategory.ROTATIONAL)
        self.assertIn("rotated 90 degrees", backend.prompts[1])
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.info.get("duration"), 150)
            self.assertNotIn("loop", image.info)

    def test_frames_removed_unless_kept(self) -> None:
        AnimatedGifGenerator(config=self.config, backend=StubBackend()).run(self._request())
        self.assertEqual(list(self.config.frames_path.rglob("*.png")), [])

        result = AnimatedGifGenerator(config=self.config, backend=StubBackend()).run(self._request(keep_frames=True))
        self.assertTrue(result.frames_kept)
        self.assertEqual(len(list((self.config.frames_path / result.run_id).glob("frame_*.png"))), 4)

    def test_report_and_run_logs_written(self) -> None:
        result = AnimatedGifGenerator(config=self.config, backend=StubBackend()).run(self._request())

        self.assertTrue(result.report_path.exists())
        report = json.loads(result.report_path.read_text(encoding="utf-8"))
        self.assertEqual(report["outcome"], "complete")
        self.assertEqual(report["category"], "cyclic-limb")
        self.assertEqual(len(report["frames"]), 4)

        run_dir = Path(self.config.runs_dir) / result.run_id
        for step in ("ClassifyMotion", "PlanFrames", "MaterializeFrames", "AssembleAnimation", "CleanupFrames", "Report"):
            self.assertTrue((run_dir / f"{step}-response.json").exists(), step)
        trace = json.loads((run_dir / "MaterializeFrames-response.json").read_text(encoding="utf-8"))
        self.assertFalse(trace["cancelled"])
        self.assertEqual([frame["index"] for frame in trace["frames"]], [0, 1, 2, 3])
        self.assertTrue(all(frame["image_location"] for frame in trace["frames"]))

    def test_reference_images_reach_backend(self) -> None:
        reference = write_png(self.root / "ref.png", (10, 10, 10))
        backend = StubBackend()
        AnimatedGifGenerator(config=self.config, backend=backend).run(
            self._request(reference_images=(str(reference),))
        )
        self.assertEqual(set(backend.references), {(str(reference),)})

    def test_all_frames_failing_raises_empty_sequence(self) -> None:
        backend = StubBackend(fail_indices={0, 1, 2, 3})
        with self.assertRaises(EmptySequenceError) as ctx:
            AnimatedGifGenerator(config=self.config, backend=backend).run(self._request())

        result = ctx.exception.result
        self.assertIsNotNone(result)
        self.assertIs(result.outcome, RunOutcome.FAILED)
        self.assertTrue(result.report_path.exists())
        self.assertEqual(list(self.config.gifs_path.glob("*.gif")), [])

    def test_identical_frames_keep_frame_count(self) -> None:
        same = png_bytes((30, 120, 200), (64, 64))
        backend = StubBackend(payloads={index: same for index in range(4)})
        result = AnimatedGifGenerator(config=self.config, backend=backend).run(self._request())
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 4)

    def test_unreadable_frame_is_marked_failed(self) -> None:
        store = UnreadableFrameStore(self.config.frames_path, {"frame_01"})
        result = AnimatedGifGenerator(config=self.config, backend=StubBackend(), store=store).run(self._request())

        self.assertEqual(
            [artifact.status for artifact in result.frame_artifacts],
            [FrameStatus.SUCCESS, FrameStatus.FAILED, FrameStatus.SUCCESS, FrameStatus.SUCCESS],
        )
        self.assertIn("read failed", result.frame_artifacts[1].error)
        self.assertIs(result.outcome, RunOutcome.PARTIAL)
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 3)
        report = json.loads(result.report_path.read_text(encoding="utf-8"))
        self.assertEqual(report["frames"][1]["status"], "failed")
        self.assertEqual(list(self.config.frames_path.rglob("*.png")), [])

    def test_no_readable_frame_raises_empty_sequence(self) -> None:
        store = UnreadableFrameStore(self.config.frames_path, {f"frame_{index:02d}" for index in range(4)})
        with self.assertRaises(EmptySequenceError) as ctx:
            AnimatedGifGenerator(config=self.config, backend=StubBackend(), store=store).run(self._request())
        result = ctx.exception.result
        self.assertIs(result.outcome, RunOutcome.FAILED)
        self.assertTrue(result.report_path.exists())

    def test_unwritable_output_is_reported(self) -> None:
        self.config.gifs_path.parent.mkdir(parents=True)
        self.config.gifs_path.write_text("not a directory", encoding="utf-8")
        with self.assertRaises(StorageError):
            AnimatedGifGenerator(config=self.config, backend=StubBackend()).run(self._request())
        self.assertEqual(len(list(self.config.reports_path.glob("*-report.json"))), 1)

    def test_invalid_request_has_no_side_effects(self) -> None:
        backend = StubBackend()
        with self.assertRaises(InvalidRequestError):
            AnimatedGifGenerator(config=self.config, backend=backend).run(self._request(frame_count=25))
        self.assertEqual(backend.calls, [])
        self.assertFalse(self.config.gifs_path.exists())
        self.assertFalse(Path(self.config.runs_dir).exists())
        self.assertFalse(self.config.frames_path.exists())

    def test_cancelled_run_skips_assembly_and_keeps_frames(self) -> None:
        token = CancelToken()

        class CancellingBackend(StubBackend):
            def generate(self, prompt, reference_images=()):
                data = super().generate(prompt, reference_images)
                token.cancel()
                return data

        result = AnimatedGifGenerator(config=self.config, backend=CancellingBackend()).run(
            self._request(), cancel_token=token
        )

        self.assertTrue(result.cancelled)
        self.assertIs(result.outcome, RunOutcome.CANCELLED)
        self.assertIsNone(result.encoded_output)
        self.assertEqual(len(result.frame_artifacts), 1)
        self.assertTrue(result.frame_artifacts[0].image_location.exists())
        self.assertTrue(result.report_path.exists())

    def test_missing_backend_configuration(self) -> None:
        with self.assertRaises(BackendUnavailableError):
            AnimatedGifGenerator(config=self.config).run(self._request())

    def test_mock_generation_end_to_end(self) -> None:
        config = make_config(self.root, enable_mock_generation=True)
        result = AnimatedGifGenerator(config=config).run(self._request(frame_count=3))
        with Image.open(result.encoded_output) as image:
            self.assertEqual(image.n_frames, 3)

    def test_run_many(self) -> None:
        backend = StubBackend()
        results = AnimatedGifGenerator(config=self.config, backend=backend).run_many(
            self._request(frame_count=2), ["walking", "flying", MotionCategory.WAVE]
        )
        self.assertEqual(
            [result.category for result in results],
            [MotionCategory.CYCLIC_LIMB, MotionCategory.WING_BEAT, MotionCategory.WAVE],
        )
        self.assertEqual(len({result.encoded_output for result in results}), 3)

    def test_assemble_from_frames(self) -> None:
        paths = [write_png(self.root / "in" / f"{index}.png", (index * 80, 0, 0)) for index in range(3)]
        output = AnimatedGifGenerator(config=self.config, backend=StubBackend()).assemble_from_frames(
            paths, self.root / "from_frames.gif", width=32, height=32
        )
        with Image.open(output) as image:
            self.assertEqual(image.n_frames, 3)
            self.assertEqual(image.info.get("duration"), 800)

    def test_assemble_from_frames_validates(self) -> None:
        generator = AnimatedGifGenerator(config=self.config, backend=StubBackend())
        with self.assertRaises(InvalidRequestError):
            generator.assemble_from_frames([self.root / "missing.png"], self.root / "out.gif", delay_ms=5)


if __name__ == "__main__":
    unittest.main()
