"""Artifact storage adapters."""

from .base import ArtifactStorage, ArtifactStorageError
from .local import LocalArtifactStorage
from .memory import InMemoryArtifactStorage

__all__ = [
    "ArtifactStorage",
    "ArtifactStorageError",
    "InMemoryArtifactStorage",
    "LocalArtifactStorage",
]
