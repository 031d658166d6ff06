"""Tests for storyreel.ai_generation.video_service: video job submission and polling."""

import threading
from types import SimpleNamespace

import pytest
import requests

from storyreel.ai_generation import PromptingCredentialSelector, VideoJobPoller
from storyreel.common import (
    CredentialError,
    DownloadFailed,
    GenerationCancelled,
    MissingArtifact,
    RemoteError,
    ServiceConfig,
    ValidationError,
)
from storyreel.story_generation import CreationRequest

from conftest import (
    FakeCredentialSelector,
    FakeGenaiClient,
    FakeHTTPSession,
    FakeModels,
    FakeOperations,
    FakeResponse,
)

VIDEO_URI = "https://generativelanguage.googleapis.com/files/abc:download"


def pending():
    return SimpleNamespace(done=False, error=None, response=None)


def finished(uri=VIDEO_URI):
    videos = [SimpleNamespace(video=SimpleNamespace(uri=uri))] if uri else []
    return SimpleNamespace(done=True, error=None, response=SimpleNamespace(generated_videos=videos))


def failed(message):
    return SimpleNamespace(done=True, error={"code": 8, "message": message}, response=None)


@pytest.fixture
def movie_request(two_images):
    return CreationRequest.create(
        title="Sunset",
        prompt="waves at dusk",
        output_type="movie",
        images=two_images,
    )


def make_poller(config, client, *, http=None, selector=None, cancel_event=None):
    return VideoJobPoller(
        config,
        credential_selector=selector or FakeCredentialSelector(),
        client_factory=lambda cfg: client,
        http_session=http or FakeHTTPSession(FakeResponse(content=b"MP4DATA")),
        cancel_event=cancel_event,
    )


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestGenerate:
    def test_polls_until_done_then_downloads(self, config, movie_request):
        operations = FakeOperations([pending(), finished()])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)
        http = FakeHTTPSession(FakeResponse(content=b"MP4DATA"))
        stages = []

        video = make_poller(config, client, http=http).generate(
            movie_request,
            progress_callback=lambda stage, payload: stages.append((stage, payload)),
        )

        assert video == b"MP4DATA"
        assert operations.calls == 2
        assert http.calls == [{"url": VIDEO_URI, "params": {"key": "test-key"}, "timeout": 300.0}]
        assert stages == [
            ("movie:submitted", {}),
            ("movie:polling", {"attempt": 1}),
            ("movie:polling", {"attempt": 2}),
            ("movie:downloading", {}),
        ]

    def test_submission_uses_first_image_and_fixed_settings(self, config, movie_request, two_images):
        models = FakeModels(operation=finished())
        client = FakeGenaiClient(models=models)

        make_poller(config, client).generate(movie_request)

        (call,) = models.video_calls
        assert call["model"] == config.video_model
        assert call["prompt"] == "Sunset: waves at dusk"
        assert call["image"].image_bytes == two_images[0].data
        assert call["image"].mime_type == "image/png"
        assert call["config"].number_of_videos == 1
        assert call["config"].resolution == "720p"
        assert call["config"].aspect_ratio == "16:9"

    def test_already_finished_job_is_not_polled(self, config, movie_request):
        operations = FakeOperations([])
        client = FakeGenaiClient(models=FakeModels(operation=finished()), operations=operations)
        assert make_poller(config, client).generate(movie_request) == b"MP4DATA"
        assert operations.calls == 0

    def test_mapping_shaped_operation(self, config, movie_request):
        done = {
            "done": True,
            "response": {"generatedVideos": [{"video": {"uri": VIDEO_URI}}]},
        }
        client = FakeGenaiClient(models=FakeModels(operation=done))
        assert make_poller(config, client).generate(movie_request) == b"MP4DATA"

    def test_no_images_rejected(self, config):
        request = CreationRequest(title="t", prompt="p", output_type="movie", images=())
        client = FakeGenaiClient(models=FakeModels(operation=finished()))
        with pytest.raises(ValidationError):
            make_poller(config, client).submit(request)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_job_error_surfaces_service_message(self, config, movie_request):
        operations = FakeOperations([failed("quota exceeded")])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)
        http = FakeHTTPSession(FakeResponse(content=b"MP4DATA"))

        with pytest.raises(RemoteError) as excinfo:
            make_poller(config, client, http=http).generate(movie_request)

        assert str(excinfo.value) == "Video generation failed: quota exceeded"
        assert not isinstance(excinfo.value, CredentialError)
        assert http.calls == []

    def test_missing_uri(self, config, movie_request):
        client = FakeGenaiClient(models=FakeModels(operation=finished(uri=None)))
        with pytest.raises(MissingArtifact, match="Could not retrieve video URL."):
            make_poller(config, client).generate(movie_request)

    def test_download_status_reported(self, config, movie_request):
        client = FakeGenaiClient(models=FakeModels(operation=finished()))
        http = FakeHTTPSession(FakeResponse(status_code=403, reason="Forbidden"))

        with pytest.raises(DownloadFailed, match="Forbidden") as excinfo:
            make_poller(config, client, http=http).generate(movie_request)
        assert excinfo.value.status == 403

    def test_download_network_error(self, config, movie_request):
        client = FakeGenaiClient(models=FakeModels(operation=finished()))
        http = FakeHTTPSession(requests.Timeout("read timed out"))

        with pytest.raises(DownloadFailed, match="read timed out"):
            make_poller(config, client, http=http).generate(movie_request)

    def test_submit_failure_is_remote_error(self, config, movie_request):
        client = FakeGenaiClient(models=FakeModels(error=RuntimeError("400 INVALID_ARGUMENT")))
        with pytest.raises(RemoteError, match="400 INVALID_ARGUMENT"):
            make_poller(config, client).generate(movie_request)

    def test_single_poll_failure_tolerated(self, config, movie_request):
        operations = FakeOperations([ConnectionError("reset"), finished()])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)

        assert make_poller(config, client).generate(movie_request) == b"MP4DATA"
        assert operations.calls == 2

    def test_repeated_poll_failures_abandon_job(self, config, movie_request):
        errors = [ConnectionError(f"reset {n}") for n in range(3)]
        operations = FakeOperations([*errors, finished()])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)

        with pytest.raises(RemoteError, match="reset 2"):
            make_poller(config, client).generate(movie_request)
        assert operations.calls == 3


# ---------------------------------------------------------------------------
# Credential selection
# ---------------------------------------------------------------------------

class TestCredentialSelection:
    def test_selector_opened_before_submit_when_nothing_selected(self, config, movie_request):
        selector = FakeCredentialSelector(selected=False)
        client = FakeGenaiClient(models=FakeModels(operation=finished()))

        make_poller(config, client, selector=selector).generate(movie_request)
        assert selector.opened == 1

    def test_selected_credential_not_reprompted(self, config, movie_request):
        selector = FakeCredentialSelector(selected=True)
        client = FakeGenaiClient(models=FakeModels(operation=finished()))

        make_poller(config, client, selector=selector).generate(movie_request)
        assert selector.opened == 0

    def test_entity_not_found_on_submit_reopens_selector_once(self, config, movie_request):
        selector = FakeCredentialSelector(selected=True)
        error = RuntimeError("404 NOT_FOUND. Requested entity was not found.")
        client = FakeGenaiClient(models=FakeModels(error=error))

        with pytest.raises(CredentialError, match="Requested entity was not found.") as excinfo:
            make_poller(config, client, selector=selector).generate(movie_request)

        assert selector.opened == 1
        assert isinstance(excinfo.value, RemoteError)

    def test_entity_not_found_while_polling(self, config, movie_request):
        selector = FakeCredentialSelector(selected=True)
        operations = FakeOperations([RuntimeError("Requested entity was not found.")])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)

        with pytest.raises(CredentialError):
            make_poller(config, client, selector=selector).generate(movie_request)
        assert selector.opened == 1
        assert operations.calls == 1

    def test_entity_not_found_in_job_error(self, config, movie_request):
        selector = FakeCredentialSelector(selected=True)
        client = FakeGenaiClient(models=FakeModels(operation=failed("Requested entity was not found.")))

        with pytest.raises(CredentialError, match="Video generation failed"):
            make_poller(config, client, selector=selector).generate(movie_request)
        assert selector.opened == 1

    def test_reselected_key_used_on_next_generate(self, movie_request):
        environ = {"GEMINI_API_KEY": "expired-key"}
        config = ServiceConfig.from_env(environ).with_overrides(poll_interval=0.0)
        selector = PromptingCredentialSelector(prompt_fn=lambda _: "fresh-key", environ=environ)
        rejected = FakeGenaiClient(
            models=FakeModels(error=RuntimeError("Requested entity was not found."))
        )
        accepted = FakeGenaiClient(models=FakeModels(operation=finished()))
        clients = [rejected, accepted]
        seen = []

        def client_factory(cfg):
            seen.append(cfg.resolve_api_key())
            return clients.pop(0)

        http = FakeHTTPSession(FakeResponse(content=b"MP4DATA"))
        poller = VideoJobPoller(
            config,
            credential_selector=selector,
            client_factory=client_factory,
            http_session=http,
        )

        with pytest.raises(CredentialError):
            poller.generate(movie_request)
        assert poller.generate(movie_request) == b"MP4DATA"

        assert seen == ["expired-key", "fresh-key"]
        assert http.calls[0]["params"] == {"key": "fresh-key"}


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class TestCancellation:
    def test_cancelled_before_poll(self, config, movie_request):
        operations = FakeOperations([finished()])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)
        poller = make_poller(config, client)
        poller.cancel()

        with pytest.raises(GenerationCancelled):
            poller.generate(movie_request)
        assert operations.calls == 0

    def test_shared_cancel_event(self, config, movie_request):
        event = threading.Event()
        operations = FakeOperations([pending(), pending(), finished()])
        client = FakeGenaiClient(models=FakeModels(operation=pending()), operations=operations)
        poller = make_poller(config, client, cancel_event=event)

        def cancel_after_first_poll(stage, payload):
            if stage == "movie:polling":
                event.set()

        with pytest.raises(GenerationCancelled):
            poller.generate(movie_request, progress_callback=cancel_after_first_poll)
        assert operations.calls == 1
        assert poller.cancel_event is event
