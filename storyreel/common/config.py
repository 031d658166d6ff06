"""
Service configuration passed explicitly to every component that talks to a remote API.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping

from .errors import ValidationError

DEFAULT_STORY_MODEL = "gemini/gemini-2.5-pro"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
DEFAULT_REPLICATE_EDIT_MODEL = "black-forest-labs/flux-kontext-pro"
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_MAX_POLL_FAILURES = 3
DEFAULT_VIDEO_RESOLUTION = "720p"
DEFAULT_VIDEO_ASPECT_RATIO = "16:9"

API_KEY_ENV_VARS = ("STORYREEL_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


def _first_env(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


def _coerce_positive_float(value: str | None, *, name: str, default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}.") from exc
    if number <= 0:
        raise ValidationError(f"{name} must be positive, got {number}.")
    return number


@dataclass(frozen=True)
class ServiceConfig:
    """
    Credentials and model choices for the generative services.

    Attributes
    ----------
    api_key:
        Explicit Google AI key. When ``None`` the key is looked up in ``environ``
        each time :meth:`resolve_api_key` is called, so a key selected mid-session
        is picked up by the next client that gets built.
    story_model:
        LiteLLM model string used for storybook generation.
    image_model:
        Gemini model used for image edits.
    video_model:
        Veo model used for movie generation.
    poll_interval:
        Seconds to wait between video job status polls.
    max_poll_failures:
        Consecutive failed polls tolerated before the job is abandoned.
    video_resolution, video_aspect_ratio:
        Fixed output settings for generated videos.
    replicate_api_token, replicate_edit_model:
        Settings for the optional Replicate image-edit backend.
    environ:
        Mapping the API key is read from when ``api_key`` is unset. Defaults to
        ``os.environ``.
    """

    api_key: str | None = None
    story_model: str = DEFAULT_STORY_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    video_model: str = DEFAULT_VIDEO_MODEL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES
    video_resolution: str = DEFAULT_VIDEO_RESOLUTION
    video_aspect_ratio: str = DEFAULT_VIDEO_ASPECT_RATIO
    replicate_api_token: str | None = None
    replicate_edit_model: str = DEFAULT_REPLICATE_EDIT_MODEL
    environ: Mapping[str, str] | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServiceConfig":
        """
        Build a configuration from environment variables, falling back to defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            story_model=_first_env(env, "STORYREEL_STORY_MODEL", "LITELLM_STORY_MODEL")
            or DEFAULT_STORY_MODEL,
            image_model=_first_env(env, "STORYREEL_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            video_model=_first_env(env, "STORYREEL_VIDEO_MODEL") or DEFAULT_VIDEO_MODEL,
            poll_interval=_coerce_positive_float(
                _first_env(env, "STORYREEL_POLL_INTERVAL"),
                name="STORYREEL_POLL_INTERVAL",
                default=DEFAULT_POLL_INTERVAL,
            ),
            video_resolution=_first_env(env, "STORYREEL_VIDEO_RESOLUTION")
            or DEFAULT_VIDEO_RESOLUTION,
            video_aspect_ratio=_first_env(env, "STORYREEL_VIDEO_ASPECT_RATIO")
            or DEFAULT_VIDEO_ASPECT_RATIO,
            replicate_api_token=_first_env(env, "REPLICATE_API_TOKEN"),
            replicate_edit_model=_first_env(env, "STORYREEL_REPLICATE_EDIT_MODEL")
            or DEFAULT_REPLICATE_EDIT_MODEL,
            environ=environ,
        )

    def resolve_api_key(self) -> str | None:
        """Return the explicit key, or whatever the environment currently holds."""
        if self.api_key:
            return self.api_key
        env = os.environ if self.environ is None else self.environ
        return _first_env(env, *API_KEY_ENV_VARS)

    def with_overrides(self, **changes: object) -> "ServiceConfig":
        return replace(self, **changes)
