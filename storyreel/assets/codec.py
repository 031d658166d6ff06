"""
Conversions between raw media bytes, base64 text, and displayable references.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Iterator

from storyreel.common.errors import MalformedEncoding

logger = logging.getLogger(__name__)

_EXTENSION_OVERRIDES = {
    "image/jpeg": ".jpg",
    "video/mp4": ".mp4",
}


def encode_to_text(data: bytes) -> str:
    """Encode ``data`` as standard base64 text."""
    return base64.b64encode(data).decode("ascii")


def decode_from_text(text: str) -> bytes:
    """
    Decode base64 text produced by :func:`encode_to_text`.

    Raises :class:`MalformedEncoding` for text outside the base64 alphabet or with
    broken padding.
    """
    try:
        return base64.b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError, AttributeError) as exc:
        raise MalformedEncoding("Text is not valid base64 data.") from exc


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{encode_to_text(data)}"


def parse_data_uri(uri: str) -> tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` URI into bytes and MIME type."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise MalformedEncoding("Expected a base64 data URI.")
    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    return decode_from_text(payload), mime_type


def extension_for(mime_type: str) -> str:
    normalized = mime_type.split(";", 1)[0].strip().lower()
    if normalized in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[normalized]
    return mimetypes.guess_extension(normalized) or ".bin"


class DisplayReferenceRegistry:
    """
    Allocates and releases display references for in-memory media.

    A reference is the path of a file written into a private temporary directory,
    so any viewer that accepts a file path can render it directly. The registry
    owns the directory: :meth:`close` releases every live reference and removes
    the directory, which is the Python counterpart of a browser session ending.

    The ``made_count`` and ``released_count`` counters make leaks observable:
    ``released_count == made_count - len(live_references)`` always holds.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        if root is None:
            self._root = Path(tempfile.mkdtemp(prefix="storyreel-"))
            self._owns_root = True
        else:
            self._root = Path(root)
            self._root.mkdir(parents=True, exist_ok=True)
            self._owns_root = False
        self._live: dict[str, Path] = {}
        self._closed = False
        self.made_count = 0
        self.released_count = 0

    @property
    def root(self) -> Path:
        return self._root

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def live_references(self) -> tuple[str, ...]:
        return tuple(self._live)

    def make_display_reference(self, data: bytes, mime_type: str) -> str:
        """Write ``data`` to a new file and return its path as the reference."""
        if self._closed:
            raise RuntimeError("Display reference registry has been closed.")

        path = self._root / f"{uuid.uuid4().hex}{extension_for(mime_type)}"
        path.write_bytes(data)
        reference = str(path)
        self._live[reference] = path
        self.made_count += 1
        logger.debug("Allocated display reference %s (%d bytes).", reference, len(data))
        return reference

    def release_display_reference(self, reference: str | None) -> None:
        """
        Release a reference made by this registry.

        Unknown references (already released, URLs, data URIs, paths owned by
        someone else) are ignored.
        """
        if reference is None:
            return
        path = self._live.pop(reference, None)
        if path is None:
            return
        path.unlink(missing_ok=True)
        self.released_count += 1
        logger.debug("Released display reference %s.", reference)

    def is_live(self, reference: str) -> bool:
        return reference in self._live

    def resolve(self, reference: str) -> bytes:
        try:
            path = self._live[reference]
        except KeyError:
            raise KeyError(f"Unknown or released display reference: {reference}") from None
        return path.read_bytes()

    def close(self) -> None:
        if self._closed:
            return
        for reference in list(self._live):
            self.release_display_reference(reference)
        self._closed = True
        if self._owns_root:
            shutil.rmtree(self._root, ignore_errors=True)

    def __iter__(self) -> Iterator[str]:
        return iter(self.live_references)

    def __enter__(self) -> "DisplayReferenceRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
