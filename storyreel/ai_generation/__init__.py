"""
Remote media generation: image edits and video jobs.
"""

from .credentials import CredentialSelector, PromptingCredentialSelector
from .image_editing import (
    GeminiImageEditor,
    ImageEditor,
    ImageEditSession,
    ReplicateImageEditor,
    apply_image_edit,
    first_inline_image,
)
from .video_service import VIDEO_MIME_TYPE, VideoJobHandle, VideoJobPoller

__all__ = [
    "CredentialSelector",
    "GeminiImageEditor",
    "ImageEditor",
    "ImageEditSession",
    "PromptingCredentialSelector",
    "ReplicateImageEditor",
    "VIDEO_MIME_TYPE",
    "VideoJobHandle",
    "VideoJobPoller",
    "apply_image_edit",
    "first_inline_image",
]
