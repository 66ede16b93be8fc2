from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from uuid import uuid4

from maintenance_hub.domain.models import AttachmentFileType
from maintenance_hub.infra.config import Settings, get_settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024
IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
    }
)
VIDEO_TYPES = frozenset({"video/mp4", "video/avi", "video/mov"})


class FileStorageError(Exception):
    pass


@dataclass(frozen=True)
class UploadRule:
    allowed_types: frozenset[str]
    max_size: int
    subdir: str


UPLOAD_RULES: dict[AttachmentFileType, UploadRule] = {
    AttachmentFileType.AVATAR: UploadRule(IMAGE_TYPES, 5 * MB, "avatars"),
    AttachmentFileType.MACHINE: UploadRule(IMAGE_TYPES, 10 * MB, "machines"),
    AttachmentFileType.REPORT: UploadRule(IMAGE_TYPES | VIDEO_TYPES | DOCUMENT_TYPES, 50 * MB, "reports"),
    AttachmentFileType.MAINTENANCE: UploadRule(IMAGE_TYPES | VIDEO_TYPES | DOCUMENT_TYPES, 50 * MB, "maintenance"),
}


@dataclass(frozen=True)
class StoredFile:
    filename: str
    path: str
    size: int


class LocalFileStorage:
    def __init__(self, root_dir: Path, public_prefix: str = "/uploads") -> None:
        self._root_dir = root_dir
        self._public_prefix = public_prefix.rstrip("/")
        self._root_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> LocalFileStorage:
        settings = settings or get_settings()
        return cls(settings.upload_dir, settings.public_upload_prefix)

    def _safe_path(self, relative_path: str) -> Path:
        key_path = PurePosixPath(relative_path)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise FileStorageError("invalid file path")
        if not key_path.parts:
            raise FileStorageError("file path is empty")
        return self._root_dir / Path(*key_path.parts)

    def store(self, *, content: bytes, subdir: str, original_name: str) -> StoredFile:
        suffix = PurePosixPath(original_name.replace("\\", "/")).suffix.lower()
        filename = f"{uuid4().hex}{suffix}"
        relative_path = f"{subdir}/{filename}"
        path = self._safe_path(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return StoredFile(filename=filename, path=relative_path, size=len(content))

    def delete(self, relative_path: str) -> bool:
        """Remove a stored file. Returns ``False`` instead of raising when it cannot."""
        try:
            path = self._safe_path(relative_path)
            if not path.exists():
                return False
            path.unlink()
        except (FileStorageError, OSError):
            logger.warning("stored file could not be removed", exc_info=True, extra={"path": relative_path})
            return False
        return True

    def public_url(self, relative_path: str) -> str:
        return f"{self._public_prefix}/{relative_path.lstrip('/')}"
