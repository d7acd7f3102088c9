import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from signing.clock import Clock
from signing.documents.exceptions import (
    DocumentError, InvalidArgumentError, InvalidOperationError, NotFoundError,
)
from signing.documents.models.reminder import ReminderType, SignatureReminder
from signing.documents.models.signature import SignerStatus, SigningMode
from signing.documents.repositories.document_repository import DocumentRepository
from signing.documents.repositories.reminder_repository import ReminderRepository
from signing.documents.repositories.signature_repository import SignatureRepository
from signing.documents.schemas import ManualReminderResponse, ReminderHistoryEntry, ReminderHistoryResponse
from signing.documents.services.access import require_document_action, require_member
from signing.documents.services.collaborators import GroupDirectory
from signing.documents.services.signing_service import ACTIVE_STATUSES
from signing.notifications.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

MAX_REMINDER_MESSAGE_LENGTH = 1000


class ReminderService:
    """On-demand reminders and the reminder log of a document."""

    def __init__(self, session: Session, directory: GroupDirectory, notifier: NotificationService,
                 clock: Optional[Clock] = None):
        self.session = session
        self.directory = directory
        self.notifier = notifier
        self.clock = clock or Clock()
        self.documents = DocumentRepository(session)
        self.signatures = SignatureRepository(session)
        self.reminders = ReminderRepository(session)

    def send_manual_reminder(self, document_id: UUID, user_id: UUID,
                             message: Optional[str] = None) -> ManualReminderResponse:
        """
        Nudges every pending signer, or only the signer whose turn it is in
        sequential mode. Each delivered reminder is logged as a MANUAL
        reminder; a failed delivery leaves no log row and is reported back.
        """
        try:
            document = self.documents.get(document_id)
            if not document:
                raise NotFoundError("Document not found")
            require_document_action(self.directory, document, user_id, "remind")

            if document.signature_status not in ACTIVE_STATUSES:
                raise InvalidOperationError(
                    f"Only documents out for signing have signers to remind "
                    f"(current status: {document.signature_status.value})"
                )
            if message is not None and len(message) > MAX_REMINDER_MESSAGE_LENGTH:
                raise InvalidArgumentError(
                    f"Reminder message exceeds {MAX_REMINDER_MESSAGE_LENGTH} characters"
                )

            signatures = self.signatures.find_by_document(document_id)
            pending = [s for s in signatures if s.status == SignerStatus.SENT_FOR_SIGNING]
            if pending and pending[0].signing_mode == SigningMode.SEQUENTIAL:
                pending = [SignatureRepository.next_pending(pending)]
            if not pending:
                raise InvalidOperationError("No pending signers to remind")
        except DocumentError:
            self.session.rollback()
            raise

        now = self.clock.now()
        file_name = document.file_name
        targets = [(s.id, s.signer_id, s.due_date) for s in pending]

        reminded, failed = [], []
        for signature_id, signer_id, due_date in targets:
            try:
                self.reminders.add(SignatureReminder(
                    signature_id=signature_id,
                    reminder_type=ReminderType.MANUAL,
                    sent_at=now,
                    sent_by=user_id,
                    message=message,
                ))
                self.notifier.notify_signature_reminder(signer_id, document_id, file_name, due_date, note=message)
                self.session.commit()
                reminded.append(signer_id)
            except Exception:
                logger.exception("Failed to send manual reminder for signature %s", signature_id)
                self.session.rollback()
                failed.append(signer_id)

        logger.info("Manual reminder for document %s sent by %s to %d signers (%d failed)",
                    document_id, user_id, len(reminded), len(failed))

        return ManualReminderResponse(
            document_id=document_id,
            reminded_signer_ids=reminded,
            failed_signer_ids=failed,
            sent_at=now,
        )

    def get_reminder_history(self, document_id: UUID, user_id: UUID) -> ReminderHistoryResponse:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)

        reminders = self.reminders.find_by_document(document_id)
        return ReminderHistoryResponse(
            document_id=document_id,
            total_reminders=len(reminders),
            reminders=[
                ReminderHistoryEntry(
                    id=r.id,
                    signature_id=r.signature_id,
                    signer_id=r.signature.signer_id,
                    signer_name=r.signature.signer.name,
                    reminder_type=r.reminder_type,
                    sent_at=r.sent_at,
                    sent_by=r.sent_by,
                    sent_by_name=r.sender.name if r.sender else None,
                    message=r.message,
                )
                for r in reminders
            ],
        )
