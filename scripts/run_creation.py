"""
CLI to generate a storybook or a movie from a title, a prompt, and reference images.

Usage:
    python scripts/run_creation.py \
        --title "Sparky" \
        --prompt "a robot explores a cave" \
        --output-type storybook \
        --image robot.png --image cave.jpg \
        --output-dir exports/ --pdf

    python scripts/run_creation.py --request request.yaml --image robot.png

Environment variables:
    STORYREEL_API_KEY - Google AI key (GEMINI_API_KEY, GOOGLE_API_KEY and API_KEY
                        are also read; prompted for on movie runs when missing)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from storyreel import (  # noqa: E402
    MovieResult,
    ServiceConfig,
    StorybookPDFBuilder,
    StorybookResult,
    StoryReelError,
    StoryReelSession,
)
from storyreel.ai_generation import PromptingCredentialSelector  # noqa: E402
from storyreel.pipeline import RenderedImagePage, RenderedTextPage, save_video  # noqa: E402


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for a StoryReel run.
    """

    def __init__(self) -> None:
        self._poll_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "request:dispatching":
                self._write(
                    f"[1/3] Sending {payload.get('output_type')} request "
                    f"'{payload.get('title')}' with {payload.get('image_count')} image(s)..."
                )
            case "storybook:generating":
                self._write("[2/3] Writing the storybook...")
            case "storybook:generated":
                self._write(f"[2/3] Storybook ready ({payload.get('total_pages', 0)} pages).")
            case "movie:submitting":
                self._write("[2/3] Submitting the video job...")
            case "movie:submitted":
                self._write("[2/3] Video job accepted. This usually takes a few minutes.")
                self._poll_bar = tqdm(desc="Status checks", unit="poll")
            case "movie:polling":
                if self._poll_bar is not None:
                    self._poll_bar.update(1)
            case "movie:downloading":
                self.close()
                self._write("[2/3] Video finished. Downloading...")
            case "run:complete":
                self.close()
                self._write("[3/3] Generation complete.")

    def close(self) -> None:
        if self._poll_bar is not None:
            self._poll_bar.close()
            self._poll_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a StoryReel storybook or movie.")
    parser.add_argument(
        "--request",
        default=None,
        help="Optional YAML/JSON file holding title, prompt, and output_type.",
    )
    parser.add_argument("--title", default=None, help="Story title (overrides the request file).")
    parser.add_argument("--prompt", default=None, help="Story prompt (overrides the request file).")
    parser.add_argument(
        "--output-type",
        choices=["storybook", "movie"],
        default=None,
        help="What to generate (default: storybook).",
    )
    parser.add_argument(
        "--image",
        action="append",
        default=[],
        help="Reference image path (repeatable, order matters).",
    )
    parser.add_argument(
        "--output-dir",
        default=".",
        help="Directory for the saved bundle, PDF, or video.",
    )
    parser.add_argument(
        "--pdf",
        action="store_true",
        help="Also render a printable PDF for storybooks.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between video status checks (default: 10).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def load_request_mapping(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported request file format. Use YAML or JSON.")

    if not isinstance(data, Dict):
        raise ValueError("Request file must deserialize to a mapping.")
    return data


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    form: Dict[str, Any] = {}
    try:
        if args.request:
            form.update(load_request_mapping(Path(args.request)))
        config = ServiceConfig.from_env()
        if args.poll_interval is not None:
            config = config.with_overrides(poll_interval=args.poll_interval)
    except (StoryReelError, ValueError, OSError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for key, value in (
        ("title", args.title),
        ("prompt", args.prompt),
        ("output_type", args.output_type),
    ):
        if value is not None:
            form[key] = value

    tracker = ProgressTracker()
    output_dir = Path(args.output_dir)

    with StoryReelSession(
        config=config,
        credential_selector=PromptingCredentialSelector(),
        progress_callback=tracker,
    ) as session:
        try:
            for image_path in args.image:
                session.library.add_file(image_path)
            result = session.submit(
                title=form.get("title"),
                prompt=form.get("prompt"),
                output_type=form.get("output_type") or form.get("outputType") or "storybook",
            )
        except (StoryReelError, FileNotFoundError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        finally:
            tracker.close()

        match result:
            case StorybookResult():
                _print_storybook(session)
                bundle_path = session.save_storybook(directory=output_dir)
                print(f"Saved storybook bundle to {bundle_path}")
                if args.pdf:
                    pdf_path = bundle_path.with_suffix(".pdf")
                    StorybookPDFBuilder().build(result, session.library.assets, pdf_path)
                    print(f"Rendered storybook PDF to {pdf_path}")
            case MovieResult():
                video_path = save_video(session.movie_bytes(), directory=output_dir)
                print(f"Saved video to {video_path}")
            case None:
                print("Nothing was generated.")

    return 0


def _print_storybook(session: StoryReelSession) -> None:
    storybook = session.result
    tqdm.write(f"\n{storybook.title}\n{'=' * len(storybook.title)}")
    for page in session.rendered_pages():
        match page:
            case RenderedTextPage(number=number, content=content):
                tqdm.write(f"\n[{number}] {content}")
            case RenderedImagePage(number=number, asset=asset):
                tqdm.write(f"\n[{number}] (image: {asset.file_name})")


if __name__ == "__main__":
    raise SystemExit(main())
