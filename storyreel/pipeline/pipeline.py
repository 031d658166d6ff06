"""
Orchestrates a StoryReel generation from submitted form data to a displayable result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence, Union

from storyreel.ai_generation import (
    VIDEO_MIME_TYPE,
    CredentialSelector,
    VideoJobPoller,
)
from storyreel.assets import AssetLibrary, DisplayReferenceRegistry, ImageAsset
from storyreel.common import ServiceConfig, ValidationError
from storyreel.story_generation import (
    CreationRequest,
    GenerationResult,
    ImagePage,
    MovieResult,
    OutputType,
    StorybookGenerator,
    StorybookResult,
    TextPage,
    UnsupportedPage,
)

from .bundle import load_bundle, save_bundle

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class RenderedTextPage:
    number: int
    content: str


@dataclass(frozen=True)
class RenderedImagePage:
    number: int
    image_index: int
    reference: str
    asset: ImageAsset


RenderedPage = Union[RenderedTextPage, RenderedImagePage]


def render_storybook(
    storybook: StorybookResult,
    images: Sequence[ImageAsset],
) -> list[RenderedPage]:
    """
    Resolve a storybook into the pages a viewer should draw.

    Image pages pointing outside ``images`` and unsupported page entries are dropped
    with a warning instead of failing the whole storybook.
    """
    rendered: list[RenderedPage] = []
    for page in storybook.pages:
        number = len(rendered) + 1
        match page:
            case TextPage(content=content):
                rendered.append(RenderedTextPage(number=number, content=content))
            case ImagePage(image_index=index):
                if not 0 <= index < len(images):
                    logger.warning(
                        "Skipping image page with index %d; only %d image(s) available.",
                        index,
                        len(images),
                    )
                    continue
                asset = images[index]
                rendered.append(
                    RenderedImagePage(
                        number=number,
                        image_index=index,
                        reference=asset.reference,
                        asset=asset,
                    )
                )
            case UnsupportedPage(reason=reason):
                logger.warning("Skipping unsupported page: %s.", reason)
    return rendered


class StoryReelOrchestrator:
    """
    High-level coordinator that dispatches a request to the storybook or movie path.
    """

    def __init__(
        self,
        *,
        registry: DisplayReferenceRegistry,
        config: ServiceConfig | None = None,
        storybook_generator: StorybookGenerator | None = None,
        video_poller: VideoJobPoller | None = None,
        credential_selector: CredentialSelector | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        config = config if config is not None else ServiceConfig.from_env()
        self._registry = registry
        if storybook_generator is None:
            storybook_generator = StorybookGenerator(config)
        if video_poller is None:
            video_poller = VideoJobPoller(config, credential_selector=credential_selector)
        self._storybook_generator = storybook_generator
        self._video_poller = video_poller
        self._progress_callback = progress_callback

    @property
    def video_poller(self) -> VideoJobPoller:
        return self._video_poller

    def run(self, request: CreationRequest) -> GenerationResult:
        """
        Produce exactly one result for ``request``. Failures propagate unchanged.

        ``request`` must already satisfy :func:`validate_request`.
        """
        self._notify(
            "request:dispatching",
            title=request.title,
            output_type=request.output_type.value,
            image_count=len(request.images),
        )

        result: GenerationResult
        match request.output_type:
            case OutputType.STORYBOOK:
                self._notify("storybook:generating")
                result = self._storybook_generator.request_storybook(request)
                self._notify("storybook:generated", total_pages=len(result.pages))
            case OutputType.MOVIE:
                self._notify("movie:submitting")
                video = self._video_poller.generate(
                    request,
                    progress_callback=self._progress_callback,
                )
                reference = self._registry.make_display_reference(video, VIDEO_MIME_TYPE)
                result = MovieResult(video_reference=reference)
                self._notify("movie:ready", reference=reference, size=len(video))
            case _:
                raise ValidationError(f"Unsupported output type: {request.output_type!r}.")

        self._notify("run:complete", output_type=request.output_type.value)
        return result

    def _notify(self, stage: str, **payload: Any) -> None:
        if self._progress_callback is not None:
            self._progress_callback(stage, payload)


class StoryReelSession:
    """
    One user's working state: uploaded images, the orchestrator, and the latest result.

    Closing the session stops any video poll in progress and releases every
    display reference it allocated.
    """

    def __init__(
        self,
        *,
        config: ServiceConfig | None = None,
        library: AssetLibrary | None = None,
        orchestrator: StoryReelOrchestrator | None = None,
        credential_selector: CredentialSelector | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.library = library if library is not None else AssetLibrary()
        self.orchestrator = orchestrator if orchestrator is not None else StoryReelOrchestrator(
            registry=self.library.registry,
            config=config,
            credential_selector=credential_selector,
            progress_callback=progress_callback,
        )
        self.result: GenerationResult = None

    @property
    def registry(self) -> DisplayReferenceRegistry:
        return self.library.registry

    def submit(self, *, title: Any, prompt: Any, output_type: Any) -> GenerationResult:
        request = CreationRequest.create(
            title=title,
            prompt=prompt,
            output_type=output_type,
            images=self.library.assets,
        )
        self._discard_result()
        self.result = self.orchestrator.run(request)
        return self.result

    def rendered_pages(self) -> list[RenderedPage]:
        if not isinstance(self.result, StorybookResult):
            return []
        return render_storybook(self.result, self.library.assets)

    def save_storybook(self, path: str | Path | None = None, *, directory: str | Path = ".") -> Path:
        if not isinstance(self.result, StorybookResult):
            raise ValueError("There is no storybook to save.")
        return save_bundle(self.result, self.library.assets, path, directory=directory)

    def load_storybook(self, path: str | Path) -> StorybookResult:
        storybook, images = load_bundle(path, self.registry)
        self._discard_result()
        self.library.clear()
        self.library.extend(images)
        self.result = storybook
        return storybook

    def movie_bytes(self) -> bytes:
        if not isinstance(self.result, MovieResult):
            raise ValueError("There is no movie to export.")
        return self.registry.resolve(self.result.video_reference)

    def close(self) -> None:
        self.orchestrator.video_poller.cancel()
        self._discard_result()
        self.library.close()

    def _discard_result(self) -> None:
        match self.result:
            case MovieResult(video_reference=reference):
                self.registry.release_display_reference(reference)
            case StorybookResult() | None:
                pass
        self.result = None

    def __enter__(self) -> "StoryReelSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
