"""
Structured representations of creation requests and generation results.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Mapping, Sequence, Union

from storyreel.assets import ImageAsset
from storyreel.common.errors import InvalidResponseShape, ValidationError


class OutputType(str, Enum):
    STORYBOOK = "storybook"
    MOVIE = "movie"

    @classmethod
    def parse(cls, value: Any) -> "OutputType":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise ValidationError(
                f"Output type must be one of: {choices}. Got {value!r}."
            ) from exc


def _coerce_required_str(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"A non-empty {field_name} is required.")
    return text


@dataclass(frozen=True)
class CreationRequest:
    """
    Everything the user submitted for one generation.

    Attributes
    ----------
    title:
        Story or movie title.
    prompt:
        Free-text description of what to create.
    output_type:
        Whether a storybook or a movie should be produced.
    images:
        Reference images in the order the user supplied them. Storybook pages
        refer to them by position.
    """

    title: str
    prompt: str
    output_type: OutputType
    images: tuple[ImageAsset, ...]

    @classmethod
    def create(
        cls,
        *,
        title: Any,
        prompt: Any,
        output_type: Any,
        images: Sequence[ImageAsset],
    ) -> "CreationRequest":
        """
        Build a validated request from raw form values.
        """
        request = cls(
            title=_coerce_required_str(title, "title"),
            prompt=_coerce_required_str(prompt, "prompt"),
            output_type=OutputType.parse(output_type),
            images=tuple(images),
        )
        validate_request(request)
        return request

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        images: Sequence[ImageAsset],
    ) -> "CreationRequest":
        """
        Build a request from a dict-like object (e.g., parsed JSON/YAML form data).
        """
        return cls.create(
            title=data.get("title"),
            prompt=data.get("prompt"),
            output_type=data.get("output_type") or data.get("outputType") or OutputType.STORYBOOK,
            images=images,
        )


def validate_request(request: CreationRequest) -> None:
    """
    Check the invariants the orchestrator relies on. Callers run this before dispatch.
    """
    if not request.title.strip():
        raise ValidationError("A non-empty title is required.")
    if not request.prompt.strip():
        raise ValidationError("A non-empty prompt is required.")
    if not isinstance(request.output_type, OutputType):
        raise ValidationError(f"Unsupported output type: {request.output_type!r}.")
    if not request.images:
        raise ValidationError("At least one image is required.")


@dataclass(frozen=True)
class TextPage:
    content: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "content": self.content}


@dataclass(frozen=True)
class ImagePage:
    image_index: int
    type: Literal["image"] = "image"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "image_index": self.image_index}


@dataclass(frozen=True)
class UnsupportedPage:
    """
    A page entry that is neither a usable text page nor a usable image page.

    The raw entry is kept so that saving the storybook again writes it back unchanged.
    Viewers skip these pages.
    """

    raw: Any
    reason: str
    type: Literal["unsupported"] = "unsupported"

    def to_dict(self) -> Any:
        return self.raw


StoryPage = Union[TextPage, ImagePage, UnsupportedPage]


def _coerce_image_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def page_from_mapping(entry: Any) -> StoryPage:
    """
    Parse one page of the wire format into a :class:`TextPage` or :class:`ImagePage`.

    Entries that are not objects, carry an unknown ``type``, or name no whole-number
    image index come back as :class:`UnsupportedPage` rather than failing the storybook.
    """
    if not isinstance(entry, Mapping):
        return UnsupportedPage(raw=entry, reason="page is not an object")

    page_type = str(entry.get("type", "")).strip().lower()
    if page_type == "text":
        content = entry.get("content")
        return TextPage(content="" if content is None else str(content))
    if page_type == "image":
        index = _coerce_image_index(entry.get("image_index"))
        if index is None:
            return UnsupportedPage(
                raw=entry,
                reason=f"image index {entry.get('image_index')!r} is not a whole number",
            )
        return ImagePage(image_index=index)

    return UnsupportedPage(raw=entry, reason=f"unknown page type {entry.get('type')!r}")


@dataclass(frozen=True)
class StorybookResult:
    title: str
    pages: tuple[StoryPage, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "pages": [page.to_dict() for page in self.pages],
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "StorybookResult":
        """
        Validate and convert the ``{title, pages}`` wire shape.

        Raises :class:`InvalidResponseShape` when the title is missing or blank, or
        when ``pages`` is not a list. The title is stored exactly as given.
        """
        if not isinstance(payload, Mapping):
            raise InvalidResponseShape("Storybook payload must be a JSON object.")

        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            raise InvalidResponseShape("Storybook payload is missing a title.")

        pages = payload.get("pages")
        if not isinstance(pages, list):
            raise InvalidResponseShape("Storybook payload must contain a 'pages' list.")

        return cls(
            title=title,
            pages=tuple(page_from_mapping(entry) for entry in pages),
        )


@dataclass(frozen=True)
class MovieResult:
    video_reference: str


GenerationResult = Union[StorybookResult, MovieResult, None]
