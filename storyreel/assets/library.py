"""
Session-scoped ownership of uploaded images and their display references.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from .codec import DisplayReferenceRegistry, encode_to_text

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

PathLike = str | Path


@dataclass(frozen=True)
class ImageAsset:
    """
    An image held in memory together with its derived forms.

    Attributes
    ----------
    file_name:
        Name the image was uploaded or saved under.
    mime_type:
        MIME type of ``data``.
    data:
        Raw image bytes.
    base64:
        Base64 text of ``data``. Always derived from ``data``; build new assets
        with :meth:`from_bytes` rather than setting it by hand.
    reference:
        Display reference allocated for ``data``.
    """

    file_name: str
    mime_type: str
    data: bytes
    base64: str
    reference: str

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        file_name: str,
        mime_type: str,
        registry: DisplayReferenceRegistry,
    ) -> "ImageAsset":
        return cls(
            file_name=file_name,
            mime_type=mime_type,
            data=data,
            base64=encode_to_text(data),
            reference=registry.make_display_reference(data, mime_type),
        )


def guess_mime_type(path: PathLike) -> str:
    mime_type, _ = mimetypes.guess_type(Path(path).name)
    return mime_type or DEFAULT_IMAGE_MIME_TYPE


class AssetLibrary:
    """
    Single owner of the session's images.

    An image's position in the library is its identity; the display reference is
    regenerated whenever the bytes change and the superseded one is released, so
    each asset has exactly one live reference at any time.
    """

    def __init__(self, registry: DisplayReferenceRegistry | None = None) -> None:
        self._owns_registry = registry is None
        self._registry = registry if registry is not None else DisplayReferenceRegistry()
        self._assets: list[ImageAsset] = []

    @property
    def registry(self) -> DisplayReferenceRegistry:
        return self._registry

    @property
    def assets(self) -> tuple[ImageAsset, ...]:
        return tuple(self._assets)

    def add(self, data: bytes, *, file_name: str, mime_type: str) -> ImageAsset:
        asset = ImageAsset.from_bytes(
            data,
            file_name=file_name,
            mime_type=mime_type,
            registry=self._registry,
        )
        self._assets.append(asset)
        logger.debug("Added image %s at index %d.", file_name, len(self._assets) - 1)
        return asset

    def add_file(self, path: PathLike) -> ImageAsset:
        image_path = Path(path).expanduser()
        if not image_path.exists():
            raise FileNotFoundError(f"Input image not found at '{image_path}'.")
        return self.add(
            image_path.read_bytes(),
            file_name=image_path.name,
            mime_type=guess_mime_type(image_path),
        )

    def extend(self, assets: Sequence[ImageAsset]) -> None:
        """
        Adopt assets whose references were allocated by this library's registry.
        """
        for asset in assets:
            if not self._registry.is_live(asset.reference):
                raise ValueError(
                    f"Image {asset.file_name!r} does not hold a live reference from this library."
                )
        self._assets.extend(assets)

    def replace(
        self,
        index: int,
        data: bytes,
        *,
        mime_type: str | None = None,
    ) -> ImageAsset:
        """
        Swap the bytes of the image at ``index``, rotating its display reference.
        """
        previous = self._assets[index]
        updated = ImageAsset.from_bytes(
            data,
            file_name=previous.file_name,
            mime_type=mime_type or previous.mime_type,
            registry=self._registry,
        )
        self._assets[index] = updated
        self._registry.release_display_reference(previous.reference)
        logger.debug("Replaced image at index %d.", index)
        return updated

    def remove(self, index: int) -> None:
        asset = self._assets.pop(index)
        self._registry.release_display_reference(asset.reference)
        logger.debug("Removed image %s from index %d.", asset.file_name, index)

    def clear(self) -> None:
        while self._assets:
            self.remove(len(self._assets) - 1)

    def close(self) -> None:
        self.clear()
        if self._owns_registry:
            self._registry.close()

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[ImageAsset]:
        return iter(tuple(self._assets))

    def __getitem__(self, index: int) -> ImageAsset:
        return self._assets[index]

    def __enter__(self) -> "AssetLibrary":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
