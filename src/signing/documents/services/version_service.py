import logging
import uuid
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from config import settings
from signing.clock import Clock
from signing.documents.exceptions import DocumentError, NotFoundError
from signing.documents.models.document import Document
from signing.documents.models.version import DocumentVersion
from signing.documents.repositories.document_repository import DocumentRepository
from signing.documents.repositories.version_repository import VersionRepository
from signing.documents.schemas import DocumentVersionListResponse, DocumentVersionResponse, FileDownload
from signing.documents.services.access import require_document_action, require_member
from signing.documents.services.collaborators import GroupDirectory, VirusScanner
from signing.documents.services.file_validation import (
    ensure_clean, file_extension, file_hash, validate_file,
)
from signing.documents.services.storage import FileStorage

logger = logging.getLogger(__name__)


def to_version_response(version: DocumentVersion) -> DocumentVersionResponse:
    return DocumentVersionResponse(
        id=version.id,
        document_id=version.document_id,
        version_number=version.version_number,
        file_name=version.file_name,
        file_size=version.file_size,
        content_type=version.content_type,
        uploaded_by=version.uploaded_by,
        uploader_name=version.uploader.name if version.uploader else None,
        uploaded_at=version.uploaded_at,
        change_description=version.change_description,
        is_current=version.is_current,
    )


class VersionService:
    """Append-only content history per document."""

    def __init__(self, session: Session, directory: GroupDirectory, storage: FileStorage,
                 scanner: VirusScanner, clock: Optional[Clock] = None,
                 max_file_size: Optional[int] = None):
        self.session = session
        self.directory = directory
        self.storage = storage
        self.scanner = scanner
        self.clock = clock or Clock()
        self.max_file_size = max_file_size or settings.MAX_FILE_SIZE_MB * 1024 * 1024
        self.documents = DocumentRepository(session)
        self.versions = VersionRepository(session)

    def upload_new_version(
        self,
        document_id: UUID,
        file_contents: bytes,
        file_name: str,
        content_type: str,
        user_id: UUID,
        change_description: Optional[str] = None,
    ) -> DocumentVersionResponse:
        """
        Stores new content for a document and makes it the current version.

        Documents without any version rows first get a version 0 built from
        their existing metadata, so history always starts at the original upload.
        """
        stored_key = None
        try:
            document = self.documents.get(document_id, for_update=True)
            if not document:
                raise NotFoundError("Document not found")
            require_document_action(self.directory, document, user_id, "upload_version")

            page_count = validate_file(file_contents, file_name, content_type, self.max_file_size)
            ensure_clean(self.scanner, file_contents, file_name)

            now = self.clock.now()
            latest = self.versions.max_version_number(document_id)
            self.versions.clear_current(document_id)
            if latest is None:
                self.versions.add(self._original_version(document))
                latest = 0

            stored_key = self.storage.put(
                file_contents,
                f"documents/{document.group_id}/{document_id}/v{latest + 1}_{uuid.uuid4()}{file_extension(file_name)}",
                content_type,
            )
            content_hash = file_hash(file_contents)
            version = DocumentVersion(
                document_id=document_id,
                version_number=latest + 1,
                storage_key=stored_key,
                file_name=file_name,
                file_size=len(file_contents),
                content_type=content_type,
                file_hash=content_hash,
                uploaded_by=user_id,
                uploaded_at=now,
                change_description=change_description,
                is_current=True,
            )
            self.versions.add(version)

            document.file_name = file_name
            document.file_size = len(file_contents)
            document.content_type = content_type
            document.storage_key = stored_key
            document.file_hash = content_hash
            document.page_count = page_count
            document.updated_at = now

            self.session.commit()
        except Exception as e:
            self.session.rollback()
            if stored_key:
                self.storage.delete(stored_key)
            if not isinstance(e, DocumentError):
                logger.exception("Failed to upload new version of document %s", document_id)
            raise

        logger.info("Document %s now at version %d (uploaded by %s)", document_id, version.version_number, user_id)
        return to_version_response(version)

    @staticmethod
    def _original_version(document: Document) -> DocumentVersion:
        return DocumentVersion(
            document_id=document.id,
            version_number=0,
            storage_key=document.storage_key,
            file_name=document.file_name,
            file_size=document.file_size,
            content_type=document.content_type,
            file_hash=document.file_hash,
            uploaded_by=document.uploaded_by,
            uploaded_at=document.created_at,
            change_description="Original upload",
            is_current=False,
        )

    def get_versions(self, document_id: UUID, user_id: UUID) -> DocumentVersionListResponse:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)

        versions = self.versions.find_by_document(document_id)
        current = next((v for v in versions if v.is_current), None)
        return DocumentVersionListResponse(
            document_id=document_id,
            current_version_number=current.version_number if current else None,
            total_versions=len(versions),
            versions=[to_version_response(v) for v in versions],
        )

    def download_version(self, document_id: UUID, version_id: UUID, user_id: UUID) -> FileDownload:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)

        version = self.versions.get(version_id)
        if not version or version.document_id != document_id:
            raise NotFoundError("Version not found")

        try:
            stream = self.storage.get(version.storage_key)
        except FileNotFoundError:
            raise NotFoundError("Version content not found in storage")
        return FileDownload(
            file_name=version.file_name,
            content_type=version.content_type,
            file_size=version.file_size,
            stream=stream,
        )
