"""
Service layer for producing storybooks via LiteLLM-compatible multimodal models.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from storyreel.assets import to_data_uri
from storyreel.common import (
    ChatResult,
    CompletionCallable,
    RemoteError,
    ServiceConfig,
    StoryReelError,
    call_chat_completion,
)
from storyreel.common.errors import InvalidResponseShape

from .models import CreationRequest, StorybookResult
from .prompting import StorybookPrompt, build_storybook_prompt

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class StorybookGenerator:
    """
    Turns a creation request into an illustrated storybook outline.

    The prompt and every image go out in a single message; the answer is decoded
    and validated locally before it is returned.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        completion_fn: CompletionCallable | None = None,
        temperature: float | None = None,
    ) -> None:
        self._config = config if config is not None else ServiceConfig.from_env()
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._temperature = temperature

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._config.story_model

    def request_storybook(self, request: CreationRequest, **response_kwargs: Any) -> StorybookResult:
        prompt: StorybookPrompt = build_storybook_prompt(request)
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt.instruction}]
        for image in request.images:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": to_data_uri(image.data, image.mime_type)},
                }
            )

        logger.info(
            "Requesting storybook %r from %s with %d image(s).",
            request.title,
            self.model,
            len(request.images),
        )
        try:
            result: ChatResult = self._completion_fn(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                temperature=self._temperature,
                api_key=self._config.resolve_api_key(),
                response_format=prompt.response_format,
                **response_kwargs,
            )
        except StoryReelError:
            raise
        except Exception as exc:
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        storybook = parse_storybook_response(result.text)
        logger.info("Received storybook %r with %d page(s).", storybook.title, len(storybook.pages))
        return storybook


def parse_storybook_response(raw_text: str) -> StorybookResult:
    """
    Decode the model's JSON answer and validate it against the storybook contract.
    """
    text = (raw_text or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidResponseShape("Invalid storybook format received from API.") from exc

    return StorybookResult.from_dict(payload)
