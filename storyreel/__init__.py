"""
StoryReel package exposing storybook and movie generation, asset handling, and export tooling.
"""

from .assets import AssetLibrary, DisplayReferenceRegistry, ImageAsset
from .common import ServiceConfig, StoryReelError
from .pdf_generation import StorybookPDFBuilder
from .pipeline import StoryReelOrchestrator, StoryReelSession, render_storybook
from .story_generation import (
    CreationRequest,
    GenerationResult,
    MovieResult,
    OutputType,
    StorybookResult,
)

__all__ = [
    "AssetLibrary",
    "CreationRequest",
    "DisplayReferenceRegistry",
    "GenerationResult",
    "ImageAsset",
    "MovieResult",
    "OutputType",
    "ServiceConfig",
    "StoryReelError",
    "StoryReelOrchestrator",
    "StoryReelSession",
    "StorybookPDFBuilder",
    "StorybookResult",
    "render_storybook",
]
