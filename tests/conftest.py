"""Shared fixtures and fakes for the StoryReel test suite."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any

import pytest

from storyreel.assets import AssetLibrary, DisplayReferenceRegistry
from storyreel.common import ServiceConfig

# A valid 1x1 PNG.
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)


@pytest.fixture
def registry(tmp_path):
    with DisplayReferenceRegistry(tmp_path / "refs") as reg:
        yield reg


@pytest.fixture
def library(registry):
    lib = AssetLibrary(registry)
    yield lib
    lib.close()


@pytest.fixture
def two_images(library):
    """imgA and imgB, in that order."""
    img_a = library.add(PNG_BYTES, file_name="imgA.png", mime_type="image/png")
    img_b = library.add(b"\xff\xd8\xff-imgB", file_name="imgB.jpg", mime_type="image/jpeg")
    return img_a, img_b


@pytest.fixture
def config():
    return ServiceConfig(api_key="test-key", poll_interval=0.0)


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", reason: str = "OK") -> None:
        self.status_code = status_code
        self.content = content
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class FakeHTTPSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self._response = response
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params: Any = None, timeout: Any = None) -> FakeResponse:
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


# ---------------------------------------------------------------------------
# google-genai client fakes
# ---------------------------------------------------------------------------

class FakeOperations:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls = 0

    def get(self, operation: Any) -> Any:
        self.calls += 1
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeModels:
    def __init__(self, *, operation: Any = None, error: Exception | None = None, content: Any = None) -> None:
        self._operation = operation
        self._error = error
        self._content = content
        self.video_calls: list[dict[str, Any]] = []
        self.content_calls: list[dict[str, Any]] = []

    def generate_videos(self, **kwargs: Any) -> Any:
        self.video_calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._operation

    def generate_content(self, **kwargs: Any) -> Any:
        self.content_calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._content


class FakeGenaiClient:
    def __init__(self, *, models: FakeModels, operations: FakeOperations | None = None) -> None:
        self.models = models
        self.operations = operations or FakeOperations([])


class FakeCredentialSelector:
    def __init__(self, *, selected: bool = True) -> None:
        self.selected = selected
        self.opened = 0

    def has_selected_credential(self) -> bool:
        return self.selected

    def open_selector(self) -> None:
        self.opened += 1
        self.selected = True


def content_response(*parts: Any) -> SimpleNamespace:
    """Build a generate_content-style response holding ``parts`` in one candidate."""
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def inline_part(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def text_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(text=text, inline_data=None)
