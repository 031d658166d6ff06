"""
Submission and polling of long-running video generation jobs.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping

import requests
from google.genai import types

from storyreel.common import (
    CredentialError,
    DownloadFailed,
    GenerationCancelled,
    MissingArtifact,
    RemoteError,
    ServiceConfig,
    StoryReelError,
    ValidationError,
    is_entity_not_found,
)
from storyreel.story_generation import CreationRequest

from .credentials import CredentialSelector
from .image_editing import GenaiClientFactory, default_genai_client

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]

VIDEO_MIME_TYPE = "video/mp4"


@dataclass
class VideoJobHandle:
    """
    Opaque handle for one submitted job; only valid for the matching await call.
    """

    operation: Any
    client: Any
    api_key: str | None


def _field(obj: Any, *names: str) -> Any:
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def _error_message(error: Any) -> str:
    message = _field(error, "message")
    return str(message) if message else str(error)


def _video_uri(operation: Any) -> str | None:
    response = _field(operation, "response", "result")
    videos = _field(response, "generated_videos", "generatedVideos")
    if not videos:
        return None
    video = _field(videos[0], "video")
    uri = _field(video, "uri")
    return str(uri) if uri else None


class VideoJobPoller:
    """
    Drives a Veo job from submission to downloaded bytes.

    Parameters
    ----------
    config:
        Service configuration (model, poll interval, fixed resolution and aspect ratio).
    credential_selector:
        Optional host capability used to pick an API key before submitting and to
        re-pick it when the service reports the key's project cannot be found.
    client_factory:
        Builds a ``google.genai.Client``. Called on every submit, after the
        credential check, so a newly selected key takes effect.
    http_session:
        Session used for the artifact download.
    cancel_event:
        Setting this event stops the poll loop with :class:`GenerationCancelled`.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        credential_selector: CredentialSelector | None = None,
        client_factory: GenaiClientFactory | None = None,
        http_session: requests.Session | None = None,
        cancel_event: threading.Event | None = None,
        download_timeout: float = 300.0,
    ) -> None:
        self._config = config if config is not None else ServiceConfig.from_env()
        self._credential_selector = credential_selector
        self._client_factory = client_factory or default_genai_client
        self._http = http_session if http_session is not None else requests.Session()
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._download_timeout = download_timeout

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def cancel(self) -> None:
        self._cancel_event.set()

    def generate(
        self,
        request: CreationRequest,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> bytes:
        handle = self.submit(request)
        self._notify(progress_callback, "movie:submitted")
        return self.await_completion(handle, progress_callback=progress_callback)

    def submit(self, request: CreationRequest) -> VideoJobHandle:
        if not request.images:
            raise ValidationError("At least one image is required to generate a movie.")

        self._ensure_credential()

        with self._credential_guard():
            client = self._client_factory(self._config)
            # Veo accepts a single reference image.
            image = request.images[0]
            if len(request.images) > 1:
                logger.info(
                    "Movie generation uses only the first image; ignoring %d other(s).",
                    len(request.images) - 1,
                )

            logger.info("Submitting video job for %r to %s.", request.title, self._config.video_model)
            try:
                operation = client.models.generate_videos(
                    model=self._config.video_model,
                    prompt=f"{request.title}: {request.prompt}",
                    image=types.Image(image_bytes=image.data, mime_type=image.mime_type),
                    config=types.GenerateVideosConfig(
                        number_of_videos=1,
                        resolution=self._config.video_resolution,
                        aspect_ratio=self._config.video_aspect_ratio,
                    ),
                )
            except StoryReelError:
                raise
            except Exception as exc:
                raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        return VideoJobHandle(
            operation=operation,
            client=client,
            api_key=self._config.resolve_api_key(),
        )

    def await_completion(
        self,
        handle: VideoJobHandle,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> bytes:
        """
        Poll until the job is done, then download the finished video.
        """
        with self._credential_guard():
            operation = self._poll_until_done(handle, progress_callback)

            error = _field(operation, "error")
            if error:
                raise RemoteError(f"Video generation failed: {_error_message(error)}")

            uri = _video_uri(operation)
            if not uri:
                raise MissingArtifact("Could not retrieve video URL.")

            self._notify(progress_callback, "movie:downloading")
            return self._download(uri, handle.api_key)

    def _poll_until_done(
        self,
        handle: VideoJobHandle,
        progress_callback: ProgressCallback | None,
    ) -> Any:
        operation = handle.operation
        attempt = 0
        consecutive_failures = 0

        while not _field(operation, "done"):
            if self._cancel_event.wait(self._config.poll_interval):
                raise GenerationCancelled("Video generation was cancelled before it finished.")

            attempt += 1
            try:
                operation = handle.client.operations.get(operation)
            except Exception as exc:
                if is_entity_not_found(exc):
                    raise RemoteError(str(exc)) from exc
                consecutive_failures += 1
                if consecutive_failures >= self._config.max_poll_failures:
                    raise RemoteError(str(exc) or exc.__class__.__name__) from exc
                logger.warning(
                    "Video status poll %d failed (%d/%d): %s",
                    attempt,
                    consecutive_failures,
                    self._config.max_poll_failures,
                    exc,
                )
                continue

            consecutive_failures = 0
            logger.debug("Video status poll %d: done=%s", attempt, bool(_field(operation, "done")))
            self._notify(progress_callback, "movie:polling", attempt=attempt)

        return operation

    def _download(self, uri: str, api_key: str | None) -> bytes:
        params = {"key": api_key} if api_key else None
        try:
            response = self._http.get(uri, params=params, timeout=self._download_timeout)
        except requests.RequestException as exc:
            raise DownloadFailed(f"Failed to download video: {exc}") from exc

        if not response.ok:
            raise DownloadFailed(
                f"Failed to download video: {response.reason}",
                status=response.status_code,
            )
        logger.info("Downloaded video (%d bytes).", len(response.content))
        return response.content

    def _ensure_credential(self) -> None:
        selector = self._credential_selector
        if selector is not None and not selector.has_selected_credential():
            selector.open_selector()

    @contextmanager
    def _credential_guard(self) -> Iterator[None]:
        try:
            yield
        except CredentialError:
            raise
        except RemoteError as exc:
            if not is_entity_not_found(exc):
                raise
            logger.warning("Credential rejected by the video service; reopening key selection.")
            if self._credential_selector is not None:
                self._credential_selector.open_selector()
            raise CredentialError(str(exc)) from exc

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)
