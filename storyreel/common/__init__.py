"""
Common utilities shared across StoryReel modules.
"""

from .config import ServiceConfig
from .errors import (
    CredentialError,
    DownloadFailed,
    GenerationCancelled,
    InvalidResponseShape,
    MalformedBundle,
    MalformedEncoding,
    MissingArtifact,
    NoImageProduced,
    RemoteError,
    StoryReelError,
    ValidationError,
    is_entity_not_found,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "ServiceConfig",
    "StoryReelError",
    "ValidationError",
    "RemoteError",
    "CredentialError",
    "InvalidResponseShape",
    "MalformedBundle",
    "MalformedEncoding",
    "MissingArtifact",
    "NoImageProduced",
    "DownloadFailed",
    "GenerationCancelled",
    "is_entity_not_found",
]
