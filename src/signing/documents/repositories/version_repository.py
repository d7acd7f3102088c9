from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from signing.documents.models.document import Document
from signing.documents.models.version import DocumentVersion


class VersionRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, version: DocumentVersion) -> DocumentVersion:
        self.db.add(version)
        self.db.flush()
        return version

    def get(self, version_id: UUID, include_deleted: bool = False) -> Optional[DocumentVersion]:
        return (
            self.db
            .query(DocumentVersion)
            .join(Document, DocumentVersion.document_id == Document.id)
            .filter(DocumentVersion.id == version_id, Document.visible(include_deleted))
            .one_or_none()
        )

    def find_by_document(self, document_id: UUID) -> List[DocumentVersion]:
        return (
            self.db
            .query(DocumentVersion)
            .options(joinedload(DocumentVersion.uploader))
            .filter(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.desc())
            .all()
        )

    def max_version_number(self, document_id: UUID) -> Optional[int]:
        return (
            self.db
            .query(func.max(DocumentVersion.version_number))
            .filter(DocumentVersion.document_id == document_id)
            .scalar()
        )

    def clear_current(self, document_id: UUID) -> None:
        (
            self.db
            .query(DocumentVersion)
            .filter(DocumentVersion.document_id == document_id, DocumentVersion.is_current.is_(True))
            .update({DocumentVersion.is_current: False}, synchronize_session="fetch")
        )
