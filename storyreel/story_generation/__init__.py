"""
Storybook generation: request and result types, prompting, and the generation client.
"""

from .models import (
    CreationRequest,
    GenerationResult,
    ImagePage,
    MovieResult,
    OutputType,
    StorybookResult,
    StoryPage,
    TextPage,
    UnsupportedPage,
    page_from_mapping,
    validate_request,
)
from .prompting import STORYBOOK_RESPONSE_SCHEMA, StorybookPrompt, build_storybook_prompt
from .story_service import StorybookGenerator, parse_storybook_response

__all__ = [
    "CreationRequest",
    "GenerationResult",
    "ImagePage",
    "MovieResult",
    "OutputType",
    "STORYBOOK_RESPONSE_SCHEMA",
    "StorybookGenerator",
    "StorybookPrompt",
    "StorybookResult",
    "StoryPage",
    "TextPage",
    "UnsupportedPage",
    "build_storybook_prompt",
    "page_from_mapping",
    "parse_storybook_response",
    "validate_request",
]
