"""Tests for storyreel.story_generation.story_service."""

import json

import pytest

from storyreel.assets import parse_data_uri
from storyreel.common import ChatResult, RemoteError
from storyreel.common.errors import InvalidResponseShape
from storyreel.story_generation import (
    CreationRequest,
    ImagePage,
    StorybookGenerator,
    TextPage,
    UnsupportedPage,
    build_storybook_prompt,
    parse_storybook_response,
)

SPARKY_PAYLOAD = {
    "title": "Sparky",
    "pages": [
        {"type": "text", "content": "Once..."},
        {"type": "image", "image_index": 0},
        {"type": "text", "content": "Then..."},
        {"type": "image", "image_index": 1},
    ],
}


class RecordingCompletion:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return ChatResult(text=self.text, raw=None)


@pytest.fixture
def sparky_request(two_images):
    return CreationRequest.create(
        title="Sparky",
        prompt="a robot explores a cave",
        output_type="storybook",
        images=two_images,
    )


# ---------------------------------------------------------------------------
# request_storybook
# ---------------------------------------------------------------------------

class TestRequestStorybook:
    def test_returns_parsed_storybook(self, config, sparky_request):
        completion = RecordingCompletion(text=json.dumps(SPARKY_PAYLOAD))
        result = StorybookGenerator(config, completion_fn=completion).request_storybook(sparky_request)

        assert result.title == "Sparky"
        assert result.pages == (
            TextPage("Once..."),
            ImagePage(0),
            TextPage("Then..."),
            ImagePage(1),
        )

    def test_sends_prompt_then_images_in_order(self, config, sparky_request, two_images):
        completion = RecordingCompletion(text=json.dumps(SPARKY_PAYLOAD))
        StorybookGenerator(config, completion_fn=completion).request_storybook(sparky_request)

        (call,) = completion.calls
        assert call["model"] == config.story_model
        assert call["api_key"] == "test-key"
        assert call["response_format"]["type"] == "json_schema"

        (message,) = call["messages"]
        assert message["role"] == "user"
        text_part, *image_parts = message["content"]
        assert text_part["type"] == "text"
        assert "Title: Sparky" in text_part["text"]
        assert "Number of images provided: 2." in text_part["text"]

        decoded = [parse_data_uri(part["image_url"]["url"]) for part in image_parts]
        assert decoded == [(image.data, image.mime_type) for image in two_images]

    def test_remote_failure_keeps_service_message(self, config, sparky_request):
        completion = RecordingCompletion(error=ConnectionError("503 Service Unavailable"))
        generator = StorybookGenerator(config, completion_fn=completion)

        with pytest.raises(RemoteError, match="503 Service Unavailable") as excinfo:
            generator.request_storybook(sparky_request)
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_non_json_answer(self, config, sparky_request):
        completion = RecordingCompletion(text="Here is your story!")
        generator = StorybookGenerator(config, completion_fn=completion)

        with pytest.raises(InvalidResponseShape, match="Invalid storybook format"):
            generator.request_storybook(sparky_request)

    def test_out_of_range_index_is_not_rejected_here(self, config, sparky_request):
        payload = {"title": "Sparky", "pages": [{"type": "image", "image_index": 7}]}
        completion = RecordingCompletion(text=json.dumps(payload))
        result = StorybookGenerator(config, completion_fn=completion).request_storybook(sparky_request)
        assert result.pages == (ImagePage(7),)


# ---------------------------------------------------------------------------
# parse_storybook_response / build_storybook_prompt
# ---------------------------------------------------------------------------

class TestParseStorybookResponse:
    def test_fenced_json_accepted(self):
        text = "```json\n" + json.dumps(SPARKY_PAYLOAD) + "\n```"
        assert parse_storybook_response(text).title == "Sparky"

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "[]",
            json.dumps({"pages": []}),
            json.dumps({"title": "  ", "pages": []}),
            json.dumps({"title": "Sparky", "pages": {"type": "text"}}),
        ],
    )
    def test_contract_violations(self, text):
        with pytest.raises(InvalidResponseShape):
            parse_storybook_response(text)

    def test_unusable_pages_do_not_fail_the_storybook(self):
        text = json.dumps(
            {
                "title": "Sparky",
                "pages": [
                    {"type": "audio"},
                    {"type": "text", "content": "Once..."},
                    {"type": "image"},
                    {"type": "image", "image_index": "two"},
                ],
            }
        )
        result = parse_storybook_response(text)

        assert result.pages[1] == TextPage("Once...")
        assert [type(page) for page in result.pages] == [
            UnsupportedPage,
            TextPage,
            UnsupportedPage,
            UnsupportedPage,
        ]


def test_prompt_mentions_every_image_index_convention(sparky_request):
    prompt = build_storybook_prompt(sparky_request)
    assert "Prompt: a robot explores a cave" in prompt.instruction
    assert "image 0, image 1" in prompt.instruction
    schema = prompt.response_format["json_schema"]["schema"]
    assert schema["required"] == ["title", "pages"]
