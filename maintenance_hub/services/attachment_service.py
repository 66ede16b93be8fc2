from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlmodel import Session, col, select

from maintenance_hub.domain.models import (
    AttachmentCategory,
    AttachmentFileType,
    FileAttachment,
    FileAttachmentRead,
)
from maintenance_hub.infra.storage import UPLOAD_RULES, LocalFileStorage
from maintenance_hub.services.errors import ValidationError

logger = logging.getLogger(__name__)

OWNER_COLUMNS: dict[AttachmentFileType, str] = {
    AttachmentFileType.AVATAR: "user_id",
    AttachmentFileType.MACHINE: "machine_id",
    AttachmentFileType.REPORT: "report_id",
    AttachmentFileType.MAINTENANCE: "maintenance_schedule_id",
}


@dataclass(frozen=True)
class UploadedFile:
    original_name: str
    content_type: str
    content: bytes


def category_for(mimetype: str) -> AttachmentCategory:
    if mimetype.startswith("image/"):
        return AttachmentCategory.IMAGE
    if mimetype.startswith("video/"):
        return AttachmentCategory.VIDEO
    if mimetype.startswith("audio/"):
        return AttachmentCategory.AUDIO
    return AttachmentCategory.DOCUMENT


class AttachmentService:
    def __init__(self, storage: LocalFileStorage | None = None) -> None:
        self.storage = storage or LocalFileStorage.from_settings()

    def _owner_column(self, file_type: AttachmentFileType) -> Any:
        return getattr(FileAttachment, OWNER_COLUMNS[file_type])

    def validate_files(self, file_type: AttachmentFileType, files: list[UploadedFile]) -> None:
        rule = UPLOAD_RULES[file_type]
        for item in files:
            if item.content_type not in rule.allowed_types:
                raise ValidationError(f"file type not allowed: {item.content_type}")
            if len(item.content) > rule.max_size:
                raise ValidationError(f"file too large: {item.original_name}")
            if not item.content:
                raise ValidationError(f"file is empty: {item.original_name}")

    def attach(
        self,
        session: Session,
        *,
        file_type: AttachmentFileType,
        owner_id: str,
        files: list[UploadedFile],
        uploaded_by: str,
        description: str | None = None,
    ) -> list[FileAttachment]:
        """Store ``files`` and add their rows to ``session``; the caller commits."""
        self.validate_files(file_type, files)
        rule = UPLOAD_RULES[file_type]
        rows: list[FileAttachment] = []
        for item in files:
            try:
                stored = self.storage.store(content=item.content, subdir=rule.subdir, original_name=item.original_name)
            except Exception:
                self.discard_stored(rows)
                raise
            row = FileAttachment(
                filename=stored.filename,
                original_name=item.original_name[:255],
                path=stored.path,
                mimetype=item.content_type,
                size=stored.size,
                category=category_for(item.content_type),
                file_type=file_type,
                description=description[:255] if description else None,
                uploaded_by=uploaded_by,
            )
            setattr(row, OWNER_COLUMNS[file_type], owner_id)
            session.add(row)
            rows.append(row)
        return rows

    def commit_with_files(self, session: Session, rows: list[FileAttachment]) -> None:
        """Commit ``session``; files stored for ``rows`` are removed again if the commit fails."""
        paths = [row.path for row in rows]
        try:
            session.commit()
        except Exception:
            session.rollback()
            for path in paths:
                self.discard_file(path)
            raise

    def discard_stored(self, rows: list[FileAttachment]) -> None:
        for row in rows:
            self.discard_file(row.path)

    def list_for_owner(self, session: Session, file_type: AttachmentFileType, owner_id: str) -> list[FileAttachment]:
        statement = (
            select(FileAttachment)
            .where(self._owner_column(file_type) == owner_id)
            .order_by(col(FileAttachment.created_at))
        )
        return list(session.exec(statement).all())

    def delete_for_owner(self, session: Session, file_type: AttachmentFileType, owner_id: str) -> int:
        """Remove every attachment of an owner: backing file first, then the row.

        A file that cannot be removed is logged and skipped so the remaining
        files, the rows and the owner itself are still cleaned up. The caller
        deletes the owner and commits.
        """
        rows = self.list_for_owner(session, file_type, owner_id)
        for row in rows:
            self.discard_file(row.path)
            session.delete(row)
        session.flush()
        return len(rows)

    def discard_file(self, path: str) -> bool:
        try:
            return self.storage.delete(path)
        except Exception:
            logger.warning("attachment file cleanup failed", exc_info=True, extra={"path": path})
            return False

    def to_read(self, row: FileAttachment) -> FileAttachmentRead:
        read = FileAttachmentRead.model_validate(row)
        read.url = self.storage.public_url(row.path)
        return read
