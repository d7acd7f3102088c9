from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from signing.documents.models.document import Document


class DocumentRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, document: Document) -> Document:
        self.db.add(document)
        self.db.flush()
        return document

    def get(self, document_id: UUID, include_deleted: bool = False, for_update: bool = False) -> Optional[Document]:
        query = (
            self.db
            .query(Document)
            .filter(Document.id == document_id, Document.visible(include_deleted))
        )
        if for_update:
            # A locking read must not be served from the identity map
            query = query.with_for_update().populate_existing()
        return query.one_or_none()

    def find_by_group(self, group_id: UUID, include_deleted: bool = False) -> List[Document]:
        return (
            self.db
            .query(Document)
            .filter(Document.group_id == group_id, Document.visible(include_deleted))
            .order_by(Document.created_at.desc())
            .all()
        )

    def find_by_hash(self, group_id: UUID, file_hash: str) -> Optional[Document]:
        return (
            self.db
            .query(Document)
            .filter(
                Document.group_id == group_id,
                Document.file_hash == file_hash,
                Document.visible(),
            )
            .first()
        )
