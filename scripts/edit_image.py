"""
Utility script to edit a single image with a free-text instruction.

Usage:
    python scripts/edit_image.py \
        --image robot.png \
        --prompt "add a glowing headlamp to the robot" \
        --output robot_headlamp.png

Environment variables:
    GEMINI_API_KEY       - required for the default Gemini backend
    REPLICATE_API_TOKEN  - required with --backend replicate
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from storyreel import AssetLibrary, ServiceConfig, StoryReelError  # noqa: E402
from storyreel.ai_generation import (  # noqa: E402
    GeminiImageEditor,
    ReplicateImageEditor,
    apply_image_edit,
)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Edit an image with a text instruction.")
    parser.add_argument("--image", required=True, help="Path of the image to edit.")
    parser.add_argument("--prompt", required=True, help="Edit instruction.")
    parser.add_argument(
        "--output",
        default=None,
        help="Where to write the edited image (default: <name>_edited<ext> next to the input).",
    )
    parser.add_argument(
        "--backend",
        choices=["gemini", "replicate"],
        default="gemini",
        help="Editing service to use (default: gemini).",
    )
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    config = ServiceConfig.from_env()
    source = Path(args.image)
    output = Path(args.output) if args.output else source.with_name(f"{source.stem}_edited{source.suffix}")

    with AssetLibrary() as library:
        try:
            library.add_file(source)
            editor = (
                ReplicateImageEditor(config)
                if args.backend == "replicate"
                else GeminiImageEditor(config)
            )
            edited = apply_image_edit(library, 0, editor, args.prompt)
        except (StoryReelError, FileNotFoundError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        output.write_bytes(edited.data)

    print(f"Saved edited image to {output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
