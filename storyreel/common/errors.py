"""
Error taxonomy shared by every StoryReel component.

Each failure a caller can react to has its own class so the UI layer can show a
specific message. The classes also derive from the closest built-in exception
(``ValueError`` for contract violations, ``RuntimeError`` for failed work) so
generic handlers keep working.
"""

from __future__ import annotations

ENTITY_NOT_FOUND_MARKER = "Requested entity was not found."


class StoryReelError(Exception):
    """Base class for all StoryReel failures."""


class ValidationError(StoryReelError, ValueError):
    """User input was rejected before anything was sent to a remote service."""


class RemoteError(StoryReelError, RuntimeError):
    """
    The remote service failed or rejected a request.

    The message is the service's own wording and is meant to be shown verbatim.
    """


class CredentialError(RemoteError):
    """The service rejected the selected credential (invalid or expired key)."""


class InvalidResponseShape(StoryReelError, ValueError):
    """A remote response decoded fine but does not follow the agreed contract."""


class MalformedBundle(StoryReelError, ValueError):
    """A saved storybook bundle could not be read back."""


class MalformedEncoding(StoryReelError, ValueError):
    """Text that should hold base64 data is not valid base64."""


class MissingArtifact(StoryReelError, RuntimeError):
    """A finished video job did not include a download location."""


class NoImageProduced(StoryReelError, RuntimeError):
    """An image edit finished without returning an image."""


class DownloadFailed(StoryReelError, RuntimeError):
    """Fetching a produced artifact failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class GenerationCancelled(StoryReelError, RuntimeError):
    """Polling stopped because the owning session ended."""


def is_entity_not_found(error: BaseException) -> bool:
    """Return True when ``error`` signals an invalid or expired credential."""
    return ENTITY_NOT_FOUND_MARKER in str(error)
