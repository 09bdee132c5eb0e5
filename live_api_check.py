#!/usr/bin/env python3
"""Run live connectivity checks against Gemini, OpenAI and Stability image backends."""

from __future__ import annotations

import argparse
import os
import sys
import textwrap
from pathlib import Path
from typing import Iterable, List, Optional

from dotenv import load_dotenv

from animgen.sequence.storage import FrameStore
from animgen.services.base import ImageBackend
from animgen.services.gemini import GeminiImageClient
from animgen.services.openai_images import OpenAIImageClient
from animgen.services.stability import StabilityImageClient


def run_generation_test(client: ImageBackend, prompt: str, store: FrameStore) -> str:
    data = client.generate(prompt)
    location = store.write(f"live_api_check/{client.name}", data)
    return f"Received {len(data)} bytes, saved to {location}"


def run_analysis_test(client: GeminiImageClient, image_path: str, question: Optional[str]) -> str:
    if not Path(image_path).is_file():
        raise FileNotFoundError(f"Image for analysis not found: {image_path}")
    answer = client.describe_image(image_path, question) if question else client.describe_image(image_path)
    return textwrap.shorten(answer, width=160)


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Smoke-test connectivity for the Gemini, OpenAI and Stability image backends.
            Each check only runs when its key is supplied (flag or environment); otherwise it is skipped.
            """
        ),
    )
    parser.add_argument("--prompt", default="A small red fox sitting in fresh snow, storybook style.")
    parser.add_argument("--gemini-key", default=os.getenv("GOOGLE_API_KEY"), help="Google AI Studio API key.")
    parser.add_argument("--gemini-model", default="gemini-2.5-flash-image", help="Gemini image model.")
    parser.add_argument("--analyze-image", help="Optional image for a Gemini description round trip.")
    parser.add_argument("--analyze-prompt", help="Question asked about --analyze-image.")
    parser.add_argument("--openai-key", default=os.getenv("OPENAI_API_KEY"), help="OpenAI API key.")
    parser.add_argument("--stability-key", default=os.getenv("STABILITY_API_KEY"), help="Stability AI API key.")
    parser.add_argument("--output-dir", default="output/live_api_check", help="Where generated test images go.")
    parser.add_argument("--timeout", type=float, default=60, help="Per-request timeout in seconds.")
    return parser.parse_args(list(argv))


def main(argv: Iterable[str]) -> int:
    load_dotenv()
    args = parse_args(argv)
    store = FrameStore(args.output_dir)

    results: List[tuple[str, bool, str]] = []
    clients = [
        ("Gemini", args.gemini_key, lambda: GeminiImageClient(args.gemini_key, model=args.gemini_model, timeout=args.timeout)),
        ("OpenAI", args.openai_key, lambda: OpenAIImageClient(args.openai_key, timeout=args.timeout)),
        ("Stability", args.stability_key, lambda: StabilityImageClient(args.stability_key, timeout=args.timeout)),
    ]
    for name, key, factory in clients:
        if not key:
            results.append((name, False, f"Skipped (no {name} key provided)"))
            continue
        try:
            results.append((name, True, run_generation_test(factory(), args.prompt, store)))
        except Exception as exc:  # noqa: BLE001 - surface connectivity failures
            results.append((name, False, repr(exc)))

    if args.analyze_image and args.gemini_key:
        try:
            analyzer = GeminiImageClient(args.gemini_key, timeout=args.timeout)
            results.append(("Gemini analysis", True, run_analysis_test(analyzer, args.analyze_image, args.analyze_prompt)))
        except Exception as exc:  # noqa: BLE001
            results.append(("Gemini analysis", False, repr(exc)))

    any_failure = False
    for name, ok, detail in results:
        status = "SUCCESS" if ok else "FAIL"
        print(f"[{name}] {status}: {detail}")
        if not ok and "Skipped" not in detail:
            any_failure = True

    return 0 if not any_failure else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
