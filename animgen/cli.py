"""Command-line interface for the animated GIF generator."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv

from .config import PipelineConfig
from .errors import (
    BackendError,
    BackendUnavailableError,
    EmptySequenceError,
    InvalidRequestError,
    StorageError,
)
from .pipeline import AnimatedGifGenerator
from .sequence.classifier import KEYWORD_TABLE
from .sequence.materializer import CancelToken
from .sequence.settings import get_preset, list_presets
from .sequence.storage import FrameStore
from .services.factory import build_analyzer
from .services.gemini import DEFAULT_ANALYSIS_PROMPT
from .types import CATEGORY_ALIASES, AnimationRequest, GapPolicy, MotionCategory, SequenceResult

EXIT_OK = 0
EXIT_EMPTY_SEQUENCE = 1
EXIT_INVALID_REQUEST = 2
EXIT_BACKEND_UNAVAILABLE = 3
EXIT_CANCELLED = 130

DEFAULT_FRAMES = 5
DEFAULT_SIZE = 512
DEFAULT_MULTIPLE = "walking,flying,dancing"


def _add_size_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--width", type=int, default=None, help="Output width in pixels (default: 512).")
    parser.add_argument("--height", type=int, default=None, help="Output height in pixels (default: 512).")


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output-dir", default=None, help="Root directory for frames, GIFs and reports.")
    parser.add_argument("--mock", action="store_true", help="Render local placeholder frames instead of calling APIs.")
    parser.add_argument("--timeout", type=float, default=None, help="Stop requesting new frames after this many seconds.")


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser with every subcommand registered."""
    parser = argparse.ArgumentParser(prog="animgen", description="Generate animated GIFs from a text prompt.")
    parser.add_argument("--log-level", default=None, help="Logging level (default: ANIMGEN_LOG_LEVEL or INFO).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate one animated GIF.")
    generate.add_argument("prompt", help="What the animation should show.")
    generate.add_argument("--frames", type=int, default=None, help="Number of frames, 2-20 (default: 5).")
    generate.add_argument("--delay", type=int, default=None, help="Frame delay in ms, 100-2000.")
    generate.add_argument("--animation", default="auto", help="Motion category or 'auto' (default).")
    generate.add_argument("--quality", type=int, default=None, help="GIF quality, 1-100.")
    generate.add_argument("--preset", default=None, help="Named preset supplying unset options.")
    generate.add_argument("--keep-frames", action="store_true", help="Keep individual frame files.")
    generate.add_argument("--no-loop", action="store_true", help="Play the animation once.")
    generate.add_argument("--loop-count", type=int, default=0, help="Repetitions; 0 loops forever (default).")
    generate.add_argument(
        "--reference",
        action="append",
        default=[],
        metavar="PATH",
        help="Reference image sent with every frame request (repeatable).",
    )
    generate.add_argument("--fill-failed", action="store_true", help="Replace failed frames with placeholders.")
    _add_size_options(generate)
    _add_run_options(generate)

    multiple = subparsers.add_parser("generate-multiple", help="Generate one GIF per motion category.")
    multiple.add_argument("prompt", help="What the animations should show.")
    multiple.add_argument(
        "--animations",
        default=DEFAULT_MULTIPLE,
        help=f"Comma-separated motion categories (default: {DEFAULT_MULTIPLE}).",
    )
    multiple.add_argument("--frames", type=int, default=DEFAULT_FRAMES, help="Number of frames per GIF.")
    _add_size_options(multiple)
    _add_run_options(multiple)

    from_frames = subparsers.add_parser("from-frames", help="Assemble existing images into a GIF.")
    from_frames.add_argument("paths", nargs="+", help="Frame images, in display order.")
    from_frames.add_argument("--output", required=True, help="Destination GIF path.")
    from_frames.add_argument("--delay", type=int, default=None, help="Frame delay in ms, 100-2000.")
    from_frames.add_argument("--quality", type=int, default=None, help="GIF quality, 1-100.")
    from_frames.add_argument("--no-loop", action="store_true", help="Play the animation once.")
    _add_size_options(from_frames)

    test = subparsers.add_parser("test", help="Run a small three-frame generation to check the setup.")
    test.add_argument("prompt", nargs="?", default="a cute cat playing with a ball")
    _add_run_options(test)

    subparsers.add_parser("types", help="List motion categories.")
    subparsers.add_parser("presets", help="List output presets.")
    subparsers.add_parser("info", help="Show configuration and API key status.")
    subparsers.add_parser("clean", help="Delete stored frame files.")

    analyze = subparsers.add_parser("analyze", help="Describe an image with Gemini.")
    analyze.add_argument("image", help="Image to describe.")
    analyze.add_argument("--prompt", default=DEFAULT_ANALYSIS_PROMPT, help="Question to ask about the image.")
    return parser


def _config_for(args: argparse.Namespace, config: PipelineConfig) -> PipelineConfig:
    if getattr(args, "output_dir", None):
        config = replace(config, output_dir=args.output_dir, frames_dir=None, gifs_dir=None)
    if getattr(args, "mock", False):
        config = replace(config, enable_mock_generation=True)
    return config


def _cancel_token(args: argparse.Namespace) -> CancelToken:
    return CancelToken(timeout_sec=getattr(args, "timeout", None))


def _request_from_args(args: argparse.Namespace) -> AnimationRequest:
    preset = get_preset(args.preset) if args.preset else None
    return AnimationRequest(
        base_prompt=args.prompt,
        frame_count=_pick(args.frames, preset and preset.frame_count, DEFAULT_FRAMES),
        motion_category=args.animation,
        width=_pick(args.width, preset and preset.width, DEFAULT_SIZE),
        height=_pick(args.height, preset and preset.height, DEFAULT_SIZE),
        delay_ms=_pick(args.delay, preset and preset.delay_ms, None),
        quality=_pick(args.quality, preset and preset.quality, None),
        loop=not args.no_loop,
        loop_count=args.loop_count,
        keep_frames=args.keep_frames,
        reference_images=tuple(args.reference),
        gap_policy=GapPolicy.PLACEHOLDER if args.fill_failed else GapPolicy.OMIT,
    )


def _pick(explicit, from_preset, default):
    if explicit is not None:
        return explicit
    if from_preset is not None:
        return from_preset
    return default


def _print_result(result: SequenceResult) -> None:
    category = result.category.value if result.category else "n/a"
    print(f"Animation: {category}")
    print(f"Frames: {len(result.succeeded)}/{len(result.frame_artifacts)}")
    for artifact in result.failed:
        print(f"  frame {artifact.index + 1} failed: {artifact.error}")
    print(f"GIF: {result.encoded_output or 'N/A'}")
    if result.report_path:
        print(f"Report: {result.report_path}")


def _exit_code(result: SequenceResult) -> int:
    return EXIT_CANCELLED if result.cancelled else EXIT_OK


def cmd_generate(args: argparse.Namespace, config: PipelineConfig) -> int:
    request = _request_from_args(args)
    generator = AnimatedGifGenerator(config=_config_for(args, config))
    result = generator.run(request, cancel_token=_cancel_token(args))
    _print_result(result)
    return _exit_code(result)


def cmd_generate_multiple(args: argparse.Namespace, config: PipelineConfig) -> int:
    categories = [item.strip() for item in args.animations.split(",") if item.strip()]
    errors = []
    for category in categories:
        try:
            MotionCategory.parse(category)
        except ValueError as exc:
            errors.append(str(exc))
    if errors or not categories:
        raise InvalidRequestError(errors or ["At least one animation type is required"])

    request = AnimationRequest(
        base_prompt=args.prompt,
        frame_count=args.frames,
        width=_pick(args.width, None, DEFAULT_SIZE),
        height=_pick(args.height, None, DEFAULT_SIZE),
    )
    generator = AnimatedGifGenerator(config=_config_for(args, config))
    results = generator.run_many(request, categories, cancel_token=_cancel_token(args))

    produced = [result for result in results if result.encoded_output]
    print(f"Generated {len(produced)}/{len(categories)} GIFs")
    for result in results:
        category = result.category.value if result.category else "n/a"
        print(f"  {category}: {result.encoded_output or 'failed'} ({result.summary()})")
    if any(result.cancelled for result in results):
        return EXIT_CANCELLED
    return EXIT_OK if produced else EXIT_EMPTY_SEQUENCE


def cmd_from_frames(args: argparse.Namespace, config: PipelineConfig) -> int:
    generator = AnimatedGifGenerator(config=config)
    output = generator.assemble_from_frames(
        args.paths,
        args.output,
        width=_pick(args.width, None, DEFAULT_SIZE),
        height=_pick(args.height, None, DEFAULT_SIZE),
        delay_ms=args.delay,
        quality=args.quality,
        loop=None if args.no_loop else 0,
    )
    print(f"GIF: {output} ({len(args.paths)} frames)")
    return EXIT_OK


def cmd_test(args: argparse.Namespace, config: PipelineConfig) -> int:
    request = AnimationRequest(
        base_prompt=args.prompt,
        frame_count=3,
        motion_category=MotionCategory.GENERIC,
        width=256,
        height=256,
        delay_ms=500,
        keep_frames=True,
    )
    generator = AnimatedGifGenerator(config=_config_for(args, config))
    result = generator.run(request, cancel_token=_cancel_token(args))
    _print_result(result)
    return _exit_code(result)


def cmd_types(args: argparse.Namespace, config: PipelineConfig) -> int:
    keywords = {category: words for category, words in KEYWORD_TABLE}
    aliases = {category: alias for alias, category in CATEGORY_ALIASES.items()}
    for position, category in enumerate(MotionCategory, start=1):
        detail = ", ".join(keywords.get(category, ())) or "fallback"
        print(f"{position}. {category.value} (alias: {aliases.get(category, '-')}; keywords: {detail})")
    return EXIT_OK


def cmd_presets(args: argparse.Namespace, config: PipelineConfig) -> int:
    for preset in list_presets():
        print(
            f"{preset.name}: {preset.frame_count} frames, {preset.width}x{preset.height}, "
            f"{preset.delay_ms}ms delay, quality {preset.quality}"
        )
    return EXIT_OK


def cmd_info(args: argparse.Namespace, config: PipelineConfig) -> int:
    print(f"Output directory: {config.output_dir}")
    print(f"Frames directory: {config.frames_path}")
    print(f"GIF directory: {config.gifs_path}")
    print(f"Run logs: {config.runs_dir}")
    print(f"Image model: {config.gemini_model} ({config.aspect_ratio})")
    print(f"Mock generation: {'on' if config.enable_mock_generation else 'off'}")
    print(f"Retries: {config.max_retries}, timeout: {config.api_timeout_sec}s")
    for backend, configured in config.key_status().items():
        print(f"{backend} key: {'configured' if configured else 'missing'}")
    return EXIT_OK


def cmd_clean(args: argparse.Namespace, config: PipelineConfig) -> int:
    removed = FrameStore(config.frames_path).clear()
    print(f"Removed {removed} frame file(s) from {config.frames_path}")
    return EXIT_OK


def cmd_analyze(args: argparse.Namespace, config: PipelineConfig) -> int:
    analyzer = build_analyzer(config)
    print(analyzer.describe_image(args.image, args.prompt))
    return EXIT_OK


COMMANDS = {
    "generate": cmd_generate,
    "generate-multiple": cmd_generate_multiple,
    "from-frames": cmd_from_frames,
    "test": cmd_test,
    "types": cmd_types,
    "presets": cmd_presets,
    "info": cmd_info,
    "clean": cmd_clean,
    "analyze": cmd_analyze,
}


def main(argv: Optional[List[str]] = None, config: Optional[PipelineConfig] = None) -> int:
    """Entry point used by ``python run.py`` and the ``animgen`` script."""
    load_dotenv()
    args = build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    config = config or PipelineConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, config)
    except InvalidRequestError as exc:
        for message in exc.errors:
            print(f"error: {message}", file=sys.stderr)
        return EXIT_INVALID_REQUEST
    except EmptySequenceError as exc:
        print(f"error: {exc}", file=sys.stderr)
        if exc.result is not None:
            _print_result(exc.result)
        return EXIT_EMPTY_SEQUENCE
    except BackendUnavailableError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_BACKEND_UNAVAILABLE
    except BackendError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_BACKEND_UNAVAILABLE
    except StorageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_EMPTY_SEQUENCE
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return EXIT_CANCELLED


if __name__ == "__main__":
    raise SystemExit(main())
