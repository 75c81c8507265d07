"""Command line entry point: recap poem and predictions for a profile JSON file."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config
from .models import Profile
from .services.model_backend import ModelBackend
from .services.wrapped_generation import generate_poem, generate_predictions


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wrapped-recap",
        description="Write a three-line poem and four predictions for a usage profile."
    )
    parser.add_argument("profile", type=Path, help="Path to the profile JSON produced by the analysis step.")
    parser.add_argument(
        "--model",
        default=Config.TEXT_GENERATOR_MODEL_PATH,
        help="Model id or local path (default: %(default)s).",
    )
    parser.add_argument(
        "--fallback-only",
        action="store_true",
        help="Skip the model and print the template text.",
    )
    parser.add_argument(
        "--no-4bit",
        action="store_true",
        help="Load the model in full precision even when bitsandbytes is available.",
    )
    parser.add_argument(
        "--assistant-name",
        default=Config.ASSISTANT_NAME,
        help="Name used in the template poem (default: %(default)s).",
    )
    return parser.parse_args(argv)


def print_progress(event: Dict[str, Any]) -> None:
    print(
        f"Loading model: {event.get('percent', 0):.0f}% ({event.get('loaded')}/{event.get('total')} MB)",
        file=sys.stderr,
    )


def load_profile(path: Path) -> Profile:
    with path.open("r", encoding="utf-8") as fh:
        return Profile.from_dict(json.load(fh))


async def run(args: argparse.Namespace) -> int:
    profile = load_profile(args.profile)

    backend: Optional[ModelBackend] = None
    if not args.fallback_only:
        backend = ModelBackend.from_config(
            {
                "TEXT_GENERATOR_MODEL_PATH": args.model,
                "TEXT_GENERATOR_USE_4BIT": not args.no_4bit,
                "MODEL_SIZE_MB": Config.MODEL_SIZE_MB,
            }
        )

    try:
        poem = await generate_poem(profile, backend, print_progress, assistant_name=args.assistant_name)
        predictions = await generate_predictions(profile, backend)
    finally:
        if backend is not None:
            backend.shutdown()

    print(poem)
    print()
    for prediction in predictions:
        print(f"- {prediction}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING)
    try:
        return asyncio.run(run(args))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Unable to read profile: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
