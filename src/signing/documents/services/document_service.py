import logging
import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from config import settings
from signing.clock import Clock
from signing.documents.exceptions import ConflictError, DocumentError, InvalidOperationError, NotFoundError
from signing.documents.models.document import Document, DocumentType, SignatureStatus
from signing.documents.repositories.document_repository import DocumentRepository
from signing.documents.schemas import DocumentResponse, FileDownload
from signing.documents.services.access import require_document_action, require_member
from signing.documents.services.collaborators import GroupDirectory, VirusScanner
from signing.documents.services.file_validation import (
    ensure_clean, file_extension, file_hash, validate_file,
)
from signing.documents.services.storage import FileStorage

logger = logging.getLogger(__name__)


class DocumentService:
    """Document intake, retrieval and soft deletion for ownership groups."""

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

    def upload_document(
        self,
        group_id: UUID,
        uploader_id: UUID,
        file_contents: bytes,
        file_name: str,
        content_type: str,
        document_type: DocumentType = DocumentType.OTHER,
        description: Optional[str] = None,
    ) -> DocumentResponse:
        """
        Validates, scans and stores a new document:
        - Uploader must belong to the group
        - File must pass type, size and content checks
        - The same content may not be uploaded twice to a group
        - Nothing is stored unless the scanner reports the file clean
        """
        require_member(self.directory, group_id, uploader_id)

        page_count = validate_file(file_contents, file_name, content_type, self.max_file_size)

        content_hash = file_hash(file_contents)
        duplicate = self.documents.find_by_hash(group_id, content_hash)
        if duplicate:
            raise ConflictError(f"This file was already uploaded to the group as '{duplicate.file_name}'")

        ensure_clean(self.scanner, file_contents, file_name)

        storage_key = f"documents/{group_id}/{uuid.uuid4()}{file_extension(file_name)}"
        self.storage.put(file_contents, storage_key, content_type)

        now = self.clock.now()
        document = Document(
            group_id=group_id,
            document_type=document_type,
            file_name=file_name,
            content_type=content_type,
            file_size=len(file_contents),
            storage_key=storage_key,
            file_hash=content_hash,
            page_count=page_count,
            description=description,
            signature_status=SignatureStatus.DRAFT,
            is_virus_scanned=True,
            uploaded_by=uploader_id,
            created_at=now,
            updated_at=now,
        )
        try:
            self.documents.add(document)
            self.session.commit()
        except Exception:
            self.session.rollback()
            self.storage.delete(storage_key)
            raise

        logger.info("Document %s uploaded to group %s by %s", document.id, group_id, uploader_id)
        return DocumentResponse.model_validate(document)

    def _get_visible(self, document_id: UUID, user_id: UUID) -> Document:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)
        return document

    def get_document(self, document_id: UUID, user_id: UUID) -> DocumentResponse:
        return DocumentResponse.model_validate(self._get_visible(document_id, user_id))

    def list_group_documents(self, group_id: UUID, user_id: UUID,
                             include_deleted: bool = False) -> List[DocumentResponse]:
        require_member(self.directory, group_id, user_id)
        documents = self.documents.find_by_group(group_id, include_deleted=include_deleted)
        return [DocumentResponse.model_validate(d) for d in documents]

    def download_document(self, document_id: UUID, user_id: UUID) -> FileDownload:
        document = self._get_visible(document_id, user_id)
        try:
            stream = self.storage.get(document.storage_key)
        except FileNotFoundError:
            raise NotFoundError("Document content not found in storage")
        return FileDownload(
            file_name=document.file_name,
            content_type=document.content_type,
            file_size=document.file_size,
            stream=stream,
        )

    def delete_document(self, document_id: UUID, user_id: UUID) -> None:
        """Soft delete. Rows and stored content stay, they just stop being visible."""
        try:
            document = self.documents.get(document_id, for_update=True)
            if not document:
                raise NotFoundError("Document not found")
            require_document_action(self.directory, document, user_id, "delete")

            if document.signature_status == SignatureStatus.FULLY_SIGNED:
                raise InvalidOperationError("A fully signed document cannot be deleted")

            document.is_deleted = True
            document.deleted_at = self.clock.now()
            document.deleted_by = user_id
            self.session.commit()
        except DocumentError:
            self.session.rollback()
            raise

        logger.info("Document %s soft-deleted by %s", document_id, user_id)
