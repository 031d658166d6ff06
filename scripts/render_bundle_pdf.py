"""
Render a saved StoryReel storybook bundle into a printable PDF.

Usage:
    python scripts/render_bundle_pdf.py \
        --bundle sparky_1700000000000.json \
        --output sparky.pdf
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on the Python path.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from storyreel import StorybookPDFBuilder  # noqa: E402
from storyreel.common import MalformedBundle  # noqa: E402
from storyreel.pdf_generation import PAGE_SIZES  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert a StoryReel storybook bundle into a storybook PDF."
    )
    parser.add_argument(
        "--bundle",
        required=True,
        help="Path to the storybook bundle JSON (output of run_creation.py).",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Destination PDF file path.",
    )
    parser.add_argument(
        "--page-size",
        choices=sorted(PAGE_SIZES.keys()),
        default="square",
        help="Page size to render (default: square).",
    )
    parser.add_argument(
        "--margin-mm",
        type=float,
        default=18.0,
        help="Page margin in millimetres (default: 18).",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    builder = StorybookPDFBuilder(
        page_size=PAGE_SIZES[args.page_size],
        margin_mm=args.margin_mm,
    )
    try:
        builder.build_from_bundle(args.bundle, args.output)
    except MalformedBundle as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Rendered storybook PDF to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
