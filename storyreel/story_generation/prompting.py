"""
Prompt construction utilities for the StoryReel storybook generation workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import CreationRequest

STORYBOOK_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {
            "type": "string",
            "description": "The title of the storybook.",
        },
        "pages": {
            "type": "array",
            "description": "An array of pages for the storybook.",
            "items": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": ["text", "image"],
                        "description": "The type of content on the page, either 'text' or 'image'.",
                    },
                    "content": {
                        "type": "string",
                        "description": "The text content for a 'text' page. Should be empty for 'image' pages.",
                    },
                    "image_index": {
                        "type": "integer",
                        "description": (
                            "The 0-based index of the image from the provided images to display "
                            "on an 'image' page. Should be empty for 'text' pages."
                        ),
                    },
                },
                "required": ["type"],
            },
        },
    },
    "required": ["title", "pages"],
}


@dataclass(frozen=True)
class StorybookPrompt:
    """
    Instruction text plus the response-format contract sent with it.
    """

    instruction: str
    response_format: dict[str, Any]


def build_storybook_prompt(request: CreationRequest) -> StorybookPrompt:
    """
    Build the instruction that asks the model to interleave text with the supplied images.
    """
    image_count = len(request.images)
    instruction = f"""Create a storybook based on the following details:
Title: {request.title}
Prompt: {request.prompt}
Number of images provided: {image_count}.

Please generate a story that incorporates the provided images. The story should be structured into pages. Each page can be either a block of text or one of the provided images.
You must use all the images provided. Refer to them by their index (e.g., image 0, image 1, etc.).
Return the result as a JSON object that follows the specified schema. The 'pages' array should interleave text and image pages to tell a compelling story.
"""

    response_format = {
        "type": "json_schema",
        "json_schema": {
            "name": "storybook",
            "schema": STORYBOOK_RESPONSE_SCHEMA,
        },
    }
    return StorybookPrompt(instruction=instruction, response_format=response_format)
