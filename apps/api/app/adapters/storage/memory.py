"""In-memory artifact storage for tests."""

from dataclasses import dataclass, field

from app.adapters.storage.base import ArtifactStorage, ArtifactStorageError


@dataclass(slots=True)
class InMemoryArtifactStorage(ArtifactStorage):
    bucket: str = "dream-videos"
    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)
    upload_count: int = 0
    fail_next_upload: str | None = None

    def upload(self, *, path: str, content: bytes, content_type: str) -> str:
        self.upload_count += 1
        if self.fail_next_upload is not None:
            message, self.fail_next_upload = self.fail_next_upload, None
            raise ArtifactStorageError(message)
        self.objects[path] = (content, content_type)
        return path

    def resolve_url(self, path: str) -> str | None:
        if path not in self.objects:
            return None
        return f"memory://{self.bucket}/{path}"


__all__ = ["InMemoryArtifactStorage"]
