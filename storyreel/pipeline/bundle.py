"""
Self-contained JSON export and import of storybooks together with their images.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from storyreel.assets import DisplayReferenceRegistry, ImageAsset, decode_from_text
from storyreel.common import InvalidResponseShape, MalformedBundle, MalformedEncoding
from storyreel.story_generation import StorybookResult

BUNDLE_VERSION = "1.0"

PathLike = str | Path


@dataclass(frozen=True)
class BundleImage:
    index: int
    file_name: str
    mime_type: str
    base64_data: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "base64Data": self.base64_data,
        }


@dataclass(frozen=True)
class ExportBundle:
    """Versioned export document: storybook, embedded images, and export time."""

    storybook: StorybookResult
    images: tuple[BundleImage, ...]
    export_date: str
    version: str = BUNDLE_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "exportDate": self.export_date,
            "storybook": self.storybook.to_dict(),
            "images": [image.to_dict() for image in self.images],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def _isoformat(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def pack(
    storybook: StorybookResult,
    images: Sequence[ImageAsset],
    *,
    now: datetime | None = None,
) -> ExportBundle:
    """
    Bundle a storybook with every image it may reference.
    """
    return ExportBundle(
        storybook=storybook,
        images=tuple(
            BundleImage(
                index=index,
                file_name=image.file_name,
                mime_type=image.mime_type,
                base64_data=image.base64,
            )
            for index, image in enumerate(images)
        ),
        export_date=_isoformat(now or datetime.now(timezone.utc)),
    )


def _parse_image_entry(entry: Any, position: int) -> tuple[int, str, str, str]:
    if not isinstance(entry, Mapping):
        raise MalformedBundle(f"Image entry {position} must be an object.")
    try:
        base64_data = entry["base64Data"]
        mime_type = entry["mimeType"]
    except KeyError as exc:
        raise MalformedBundle(f"Image entry {position} is missing {exc.args[0]!r}.") from exc
    if not isinstance(base64_data, str) or not isinstance(mime_type, str):
        raise MalformedBundle(f"Image entry {position} has invalid field types.")

    index = entry.get("index", position)
    if isinstance(index, bool) or not isinstance(index, int):
        raise MalformedBundle(f"Image entry {position} has a non-integer index.")

    file_name = str(entry.get("fileName") or f"image_{index}")
    return index, file_name, mime_type, base64_data


def unpack(
    bundle_text: str,
    registry: DisplayReferenceRegistry,
) -> tuple[StorybookResult, list[ImageAsset]]:
    """
    Rebuild a storybook and its images from bundle JSON.

    Every image gets a brand-new display reference from ``registry``.
    """
    try:
        data = json.loads(bundle_text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedBundle("Failed to parse storybook file.") from exc

    if not isinstance(data, Mapping) or not data.get("storybook") or "images" not in data:
        raise MalformedBundle("Invalid storybook file format.")
    if not isinstance(data["images"], list):
        raise MalformedBundle("Storybook file 'images' must be a list.")

    try:
        storybook = StorybookResult.from_dict(data["storybook"])
    except InvalidResponseShape as exc:
        raise MalformedBundle(f"Invalid storybook in file: {exc}") from exc

    entries = sorted(
        (_parse_image_entry(entry, position) for position, entry in enumerate(data["images"])),
        key=lambda item: item[0],
    )

    decoded: list[tuple[str, str, bytes]] = []
    for index, file_name, mime_type, base64_data in entries:
        try:
            raw = decode_from_text(base64_data)
        except MalformedEncoding as exc:
            raise MalformedBundle(f"Image {index} holds invalid base64 data.") from exc
        decoded.append((file_name, mime_type, raw))

    images = [
        ImageAsset.from_bytes(raw, file_name=file_name, mime_type=mime_type, registry=registry)
        for file_name, mime_type, raw in decoded
    ]
    return storybook, images


def default_bundle_filename(title: str, *, timestamp_ms: int | None = None) -> str:
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    slug = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
    return f"{slug}_{stamp}.json"


def default_video_filename(*, timestamp_ms: int | None = None) -> str:
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"ai_story_video_{stamp}.mp4"


def save_bundle(
    storybook: StorybookResult,
    images: Sequence[ImageAsset],
    path: PathLike | None = None,
    *,
    directory: PathLike = ".",
) -> Path:
    """Write a bundle to ``path`` (or a generated name inside ``directory``)."""
    bundle = pack(storybook, images)
    output = Path(path) if path is not None else Path(directory) / default_bundle_filename(storybook.title)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(bundle.to_json(), encoding="utf-8")
    return output


def load_bundle(
    path: PathLike,
    registry: DisplayReferenceRegistry,
) -> tuple[StorybookResult, list[ImageAsset]]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedBundle(f"Failed to read storybook file '{path}'.") from exc
    return unpack(text, registry)


def save_video(
    data: bytes,
    path: PathLike | None = None,
    *,
    directory: PathLike = ".",
) -> Path:
    output = Path(path) if path is not None else Path(directory) / default_video_filename()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    return output
