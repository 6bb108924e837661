"""Filesystem artifact storage."""

from __future__ import annotations

from pathlib import Path

from app.adapters.storage.base import ArtifactStorage, ArtifactStorageError


class LocalArtifactStorage(ArtifactStorage):
    """Stores artifacts under ``<root>/<bucket>/<path>``."""

    def __init__(self, *, root: str | Path, bucket: str) -> None:
        self._bucket_root = (Path(root) / bucket).resolve()

    def _target(self, path: str) -> Path:
        target = (self._bucket_root / path).resolve()
        if not target.is_relative_to(self._bucket_root):
            raise ArtifactStorageError("Artifact path escapes the storage bucket")
        return target

    def upload(self, *, path: str, content: bytes, content_type: str) -> str:
        target = self._target(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a concurrent reader never sees a partial video.
            partial = target.with_name(f"{target.name}.partial")
            partial.write_bytes(content)
            partial.replace(target)
        except OSError as exc:
            raise ArtifactStorageError(f"Failed to store artifact: {type(exc).__name__}") from exc
        return path

    def resolve_url(self, path: str) -> str | None:
        target = self._target(path)
        if not target.is_file():
            return None
        return target.as_uri()


__all__ = ["LocalArtifactStorage"]
