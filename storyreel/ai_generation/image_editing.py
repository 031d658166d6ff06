"""
Instruction-driven image editing through Gemini or Replicate.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

import replicate
import requests
from google import genai
from google.genai import types

from storyreel.assets import AssetLibrary, ImageAsset, to_data_uri
from storyreel.common import (
    DownloadFailed,
    NoImageProduced,
    RemoteError,
    ServiceConfig,
    StoryReelError,
    ValidationError,
)

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = (
    "Image editing failed to produce an image. "
    "Try rephrasing the edit instruction to describe a visual change."
)

GenaiClientFactory = Callable[[ServiceConfig], Any]


def default_genai_client(config: ServiceConfig) -> genai.Client:
    return genai.Client(api_key=config.resolve_api_key())


class ImageEditor(Protocol):
    def request_image_edit(self, image: ImageAsset, edit_prompt: str) -> bytes:
        ...


def _require_prompt(edit_prompt: str) -> str:
    text = (edit_prompt or "").strip()
    if not text:
        raise ValidationError("Please enter a prompt to edit the image.")
    return text


class GeminiImageEditor:
    """
    Sends an image plus a free-text instruction to a Gemini image model.

    Parameters
    ----------
    config:
        Service configuration; ``image_model`` selects the model.
    client:
        Optional pre-configured ``google.genai.Client``. Mainly useful for testing.
    client_factory:
        Builds a client from ``config`` when ``client`` is not given. Called per
        request so a freshly selected key is used.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        client: Any | None = None,
        client_factory: GenaiClientFactory | None = None,
    ) -> None:
        self._config = config if config is not None else ServiceConfig.from_env()
        self._client = client
        self._client_factory = client_factory or default_genai_client

    @property
    def model(self) -> str:
        return self._config.image_model

    def request_image_edit(self, image: ImageAsset, edit_prompt: str) -> bytes:
        instruction = _require_prompt(edit_prompt)
        client = self._client or self._client_factory(self._config)

        logger.info("Requesting edit of %s from %s.", image.file_name, self.model)
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=types.Content(
                    role="user",
                    parts=[
                        types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                        types.Part.from_text(text=instruction),
                    ],
                ),
                config=types.GenerateContentConfig(
                    response_modalities=[types.Modality.IMAGE],
                ),
            )
        except StoryReelError:
            raise
        except Exception as exc:
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        data = first_inline_image(response)
        if data is None:
            raise NoImageProduced(NO_IMAGE_MESSAGE)
        return data


def first_inline_image(response: Any) -> bytes | None:
    """Return the bytes of the first inline-image part in a generate_content response."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not getattr(inline, "data", None):
                continue
            mime_type = getattr(inline, "mime_type", None) or ""
            if mime_type and not mime_type.startswith("image/"):
                continue
            return inline.data
    return None


def _build_flux_kontext_input(*, prompt: str, image_input: str) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "input_image": image_input,
        "output_format": "png",
        "safety_tolerance": 2,
        "prompt_upsampling": False,
        "aspect_ratio": "match_input_image",
    }


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "black-forest-labs/flux-kontext-pro": _build_flux_kontext_input,
    "black-forest-labs/flux-kontext-max": _build_flux_kontext_input,
    "black-forest-labs/flux-kontext-dev": _build_flux_kontext_input,
}


def _build_replicate_input_payload(
    *,
    model_identifier: str,
    prompt: str,
    image_input: str,
) -> dict[str, Any]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    if builder is None:
        supported_models = ", ".join(sorted(_MODEL_INPUT_BUILDERS))
        raise ValidationError(
            "Model identifier "
            f"'{model_identifier}' is not configured with a default input payload. "
            f"Supported models: {supported_models}."
        )
    return builder(prompt=prompt, image_input=image_input)


class ReplicateImageEditor:
    """
    Image editing through an instruction-following model hosted on Replicate.

    Parameters
    ----------
    config:
        Service configuration; ``replicate_api_token`` and ``replicate_edit_model``
        are used. The token falls back to ``REPLICATE_API_TOKEN``.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    http_session:
        Session used to download URL outputs.
    request_timeout:
        Timeout in seconds for downloading the edited image.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        client: replicate.Client | None = None,
        http_session: requests.Session | None = None,
        request_timeout: float = 60.0,
    ) -> None:
        self._config = config if config is not None else ServiceConfig.from_env()
        if not self._config.replicate_api_token and client is None:
            raise ValidationError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass it in the config."
            )
        if client is None:
            client = replicate.Client(api_token=self._config.replicate_api_token)
        self._client = client
        self._http = http_session if http_session is not None else requests.Session()
        self._request_timeout = request_timeout

    @property
    def model_identifier(self) -> str:
        return self._config.replicate_edit_model

    def request_image_edit(self, image: ImageAsset, edit_prompt: str) -> bytes:
        instruction = _require_prompt(edit_prompt)
        replicate_input = _build_replicate_input_payload(
            model_identifier=self.model_identifier,
            prompt=instruction,
            image_input=to_data_uri(image.data, image.mime_type),
        )

        logger.info("Requesting edit of %s from Replicate model %s.", image.file_name, self.model_identifier)
        try:
            output = self._client.run(self.model_identifier, input=replicate_input)
        except StoryReelError:
            raise
        except Exception as exc:
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        item = _first_output(output)
        if item is None:
            raise NoImageProduced(NO_IMAGE_MESSAGE)
        if hasattr(item, "read"):
            return item.read()
        return self._download(str(item))

    def _download(self, url: str) -> bytes:
        try:
            response = self._http.get(url, timeout=self._request_timeout)
        except requests.RequestException as exc:
            raise DownloadFailed(f"Failed to download edited image: {exc}") from exc
        if not response.ok:
            raise DownloadFailed(
                f"Failed to download edited image: {response.reason}",
                status=response.status_code,
            )
        return response.content


def _first_output(raw: Any) -> Any | None:
    """
    Pick the first usable item from a Replicate run output.

    Newer clients return file objects (with ``read``), older ones URL strings; either
    may come alone or inside a list.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    if isinstance(raw, str):
        return raw.strip() or None
    if hasattr(raw, "read"):
        return raw
    if hasattr(raw, "__iter__"):
        for item in raw:
            found = _first_output(item)
            if found is not None:
                return found
        return None
    return str(raw)


def apply_image_edit(
    library: AssetLibrary,
    index: int,
    editor: ImageEditor,
    edit_prompt: str,
) -> ImageAsset:
    """
    Edit the image at ``index`` and install the result in place.

    File name and MIME type are kept; the display reference is rotated.
    """
    edited = editor.request_image_edit(library[index], edit_prompt)
    return library.replace(index, edited)


class ImageEditSession:
    """
    Draft workflow around one library image: edit repeatedly, revert, then save or cancel.

    Draft results get their own display references so they can be previewed; each
    is released as soon as it is superseded, reverted, saved, or cancelled.
    """

    def __init__(self, library: AssetLibrary, index: int, editor: ImageEditor) -> None:
        self._library = library
        self._index = index
        self._editor = editor
        self._original = library[index]
        self._draft: ImageAsset | None = None

    @property
    def current(self) -> ImageAsset:
        return self._draft or self._original

    @property
    def has_changes(self) -> bool:
        return self._draft is not None

    def edit(self, edit_prompt: str) -> ImageAsset:
        edited = self._editor.request_image_edit(self.current, edit_prompt)
        draft = ImageAsset.from_bytes(
            edited,
            file_name=self._original.file_name,
            mime_type=self._original.mime_type,
            registry=self._library.registry,
        )
        self._discard_draft()
        self._draft = draft
        return draft

    def revert(self) -> ImageAsset:
        self._discard_draft()
        return self._original

    def save(self) -> ImageAsset:
        if self._draft is None:
            return self._original
        saved = self._library.replace(self._index, self._draft.data)
        self._discard_draft()
        return saved

    def cancel(self) -> None:
        self._discard_draft()

    def _discard_draft(self) -> None:
        if self._draft is not None:
            self._library.registry.release_display_reference(self._draft.reference)
            self._draft = None
