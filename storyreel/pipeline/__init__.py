"""
End-to-end orchestration, storybook rendering, and bundle export/import.
"""

from .bundle import (
    BUNDLE_VERSION,
    BundleImage,
    ExportBundle,
    default_bundle_filename,
    default_video_filename,
    load_bundle,
    pack,
    save_bundle,
    save_video,
    unpack,
)
from .pipeline import (
    RenderedImagePage,
    RenderedPage,
    RenderedTextPage,
    StoryReelOrchestrator,
    StoryReelSession,
    render_storybook,
)

__all__ = [
    "BUNDLE_VERSION",
    "BundleImage",
    "ExportBundle",
    "RenderedImagePage",
    "RenderedPage",
    "RenderedTextPage",
    "StoryReelOrchestrator",
    "StoryReelSession",
    "default_bundle_filename",
    "default_video_filename",
    "load_bundle",
    "pack",
    "render_storybook",
    "save_bundle",
    "save_video",
    "unpack",
]
