from typing import List
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from signing.documents.models.document import Document
from signing.documents.models.reminder import SignatureReminder
from signing.documents.models.signature import DocumentSignature


class ReminderRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, reminder: SignatureReminder) -> SignatureReminder:
        self.db.add(reminder)
        self.db.flush()
        return reminder

    def find_by_document(self, document_id: UUID) -> List[SignatureReminder]:
        """Every reminder sent for the document's signatures, oldest first."""
        return (
            self.db
            .query(SignatureReminder)
            .join(DocumentSignature, SignatureReminder.signature_id == DocumentSignature.id)
            .join(Document, DocumentSignature.document_id == Document.id)
            .options(
                joinedload(SignatureReminder.signature).joinedload(DocumentSignature.signer),
                joinedload(SignatureReminder.sender),
            )
            .filter(DocumentSignature.document_id == document_id, Document.visible())
            .order_by(SignatureReminder.sent_at, DocumentSignature.signature_order)
            .all()
        )
