"""Artifact storage interfaces."""

from abc import ABC, abstractmethod


class ArtifactStorageError(Exception):
    """Raised when an artifact cannot be written to or resolved from durable storage."""


class ArtifactStorage(ABC):
    """Durable home for rendered videos; paths are bucket-relative."""

    @abstractmethod
    def upload(self, *, path: str, content: bytes, content_type: str) -> str:
        """Write (or overwrite) ``path`` and return the stored path."""

    @abstractmethod
    def resolve_url(self, path: str) -> str | None:
        """Return a playback URL for a stored path, or None if it is missing."""


__all__ = ["ArtifactStorage", "ArtifactStorageError"]
