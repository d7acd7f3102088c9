from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from signing.documents.models.document import Document, SignatureStatus
from signing.documents.models.signature import DocumentSignature, SignerStatus


class SignatureRepository:
    """Per-document, per-signer signing records."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def add_all(self, signatures: List[DocumentSignature]) -> List[DocumentSignature]:
        self.db.add_all(signatures)
        self.db.flush()
        return signatures

    def find_by_document(self, document_id: UUID, include_deleted: bool = False,
                         refresh: bool = False) -> List[DocumentSignature]:
        query = (
            self.db
            .query(DocumentSignature)
            .join(Document, DocumentSignature.document_id == Document.id)
            .options(joinedload(DocumentSignature.signer))
            .filter(DocumentSignature.document_id == document_id, Document.visible(include_deleted))
            .order_by(DocumentSignature.signature_order)
        )
        if refresh:
            query = query.populate_existing()
        return query.all()

    def find_for_signer(self, document_id: UUID, signer_id: UUID, signing_token: str) -> Optional[DocumentSignature]:
        return (
            self.db
            .query(DocumentSignature)
            .filter(
                DocumentSignature.document_id == document_id,
                DocumentSignature.signer_id == signer_id,
                DocumentSignature.signing_token == signing_token,
            )
            .one_or_none()
        )

    def find_incomplete_before(self, document_id: UUID, signature_order: int) -> List[DocumentSignature]:
        return (
            self.db
            .query(DocumentSignature)
            .filter(
                DocumentSignature.document_id == document_id,
                DocumentSignature.signature_order < signature_order,
                DocumentSignature.status != SignerStatus.COMPLETED,
            )
            .order_by(DocumentSignature.signature_order)
            .all()
        )

    @staticmethod
    def next_pending(signatures: List[DocumentSignature]) -> Optional[DocumentSignature]:
        pending = [s for s in signatures if s.status == SignerStatus.SENT_FOR_SIGNING]
        return min(pending, key=lambda s: s.signature_order) if pending else None

    def _pending_on_open_documents(self):
        return (
            self.db
            .query(DocumentSignature)
            .join(Document, DocumentSignature.document_id == Document.id)
            .options(joinedload(DocumentSignature.document))
            .filter(
                DocumentSignature.status == SignerStatus.SENT_FOR_SIGNING,
                Document.visible(),
                Document.signature_status.in_(
                    [SignatureStatus.SENT_FOR_SIGNING, SignatureStatus.PARTIALLY_SIGNED]
                ),
            )
        )

    def find_pending_due_after(self, now: datetime) -> List[DocumentSignature]:
        return (
            self._pending_on_open_documents()
            .filter(DocumentSignature.due_date.isnot(None), DocumentSignature.due_date > now)
            .all()
        )

    def find_pending_overdue(self, now: datetime, within: timedelta) -> List[DocumentSignature]:
        """Pending signatures whose due date passed no longer than `within` ago."""
        return (
            self._pending_on_open_documents()
            .filter(
                DocumentSignature.due_date.isnot(None),
                DocumentSignature.due_date <= now,
                DocumentSignature.due_date > now - within,
            )
            .all()
        )

    def find_pending_for_signer(self, signer_id: UUID) -> List[DocumentSignature]:
        return (
            self._pending_on_open_documents()
            .filter(DocumentSignature.signer_id == signer_id)
            .order_by(DocumentSignature.created_at)
            .all()
        )
