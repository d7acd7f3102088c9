# signing/notifications/services/notification_service.py
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from signing.notifications.models.notification import Notification, NotificationEvent
from signing.notifications.repositories.notification_repository import NotificationRepository


class NotificationTemplate:
    event: NotificationEvent

    def __init__(self, user_id: UUID, title: str, message: str, document_id: Optional[UUID] = None):
        self.user_id = user_id
        self.title = title
        self.message = message
        self.document_id = document_id

    def to_notification(self) -> Notification:
        return Notification(
            user_id=self.user_id,
            title=self.title,
            message=self.message,
            event=self.event,
            document_id=self.document_id,
        )


class SignatureRequestedNotification(NotificationTemplate):
    event = NotificationEvent.SIGNATURE_REQUESTED

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str,
                 due_date: Optional[datetime] = None, note: Optional[str] = None):
        message = f"You have been asked to sign '{file_name}'."
        if due_date:
            message += f" Please sign before {due_date:%Y-%m-%d}."
        if note:
            message += f" Message: {note}"
        super().__init__(user_id, "Signature requested", message, document_id)


class YourTurnNotification(NotificationTemplate):
    event = NotificationEvent.YOUR_TURN

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str):
        message = f"It is your turn to sign '{file_name}'."
        super().__init__(user_id, "Your turn to sign", message, document_id)


class SignatureReceivedNotification(NotificationTemplate):
    event = NotificationEvent.SIGNATURE_RECEIVED

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str,
                 signer_name: str, signed_count: int, total_signers: int):
        message = (
            f"{signer_name} signed '{file_name}' "
            f"({signed_count} of {total_signers} signatures collected)."
        )
        super().__init__(user_id, "Signature received", message, document_id)


class AllSignedNotification(NotificationTemplate):
    event = NotificationEvent.ALL_SIGNED

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str):
        message = f"All parties have signed '{file_name}'. A completion certificate can now be generated."
        super().__init__(user_id, "Document fully signed", message, document_id)


class SigningCancelledNotification(NotificationTemplate):
    event = NotificationEvent.SIGNING_CANCELLED

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str, reason: Optional[str] = None):
        message = f"Signing of '{file_name}' has been cancelled."
        if reason:
            message += f" Reason: {reason}"
        super().__init__(user_id, "Signing cancelled", message, document_id)


class SignatureReminderNotification(NotificationTemplate):
    event = NotificationEvent.SIGNATURE_REMINDER

    def __init__(self, user_id: UUID, document_id: UUID, file_name: str,
                 due_date: Optional[datetime] = None, note: Optional[str] = None, overdue: bool = False):
        if overdue:
            title = "Signature overdue"
            message = f"'{file_name}' was due on {due_date:%Y-%m-%d %H:%M} UTC and still awaits your signature."
        elif due_date:
            title = "Signature reminder"
            message = f"Reminder: '{file_name}' is awaiting your signature and is due on {due_date:%Y-%m-%d %H:%M} UTC."
        else:
            title = "Signature reminder"
            message = f"Reminder: '{file_name}' is awaiting your signature."
        if note:
            message += f" Message: {note}"
        super().__init__(user_id, title, message, document_id)


class NotificationService:
    def __init__(self, repository: NotificationRepository):
        self.notification_repository = repository

    def _send(self, template: NotificationTemplate) -> Notification:
        return self.notification_repository.save(template.to_notification())

    def notify_signature_requested(self, user_id: UUID, document_id: UUID, file_name: str,
                                   due_date: Optional[datetime] = None,
                                   note: Optional[str] = None) -> Notification:
        return self._send(SignatureRequestedNotification(user_id, document_id, file_name, due_date, note))

    def notify_your_turn(self, user_id: UUID, document_id: UUID, file_name: str) -> Notification:
        return self._send(YourTurnNotification(user_id, document_id, file_name))

    def notify_signature_received(self, user_id: UUID, document_id: UUID, file_name: str,
                                  signer_name: str, signed_count: int, total_signers: int) -> Notification:
        return self._send(SignatureReceivedNotification(
            user_id, document_id, file_name, signer_name, signed_count, total_signers
        ))

    def notify_all_signed(self, user_ids: Iterable[UUID], document_id: UUID, file_name: str) -> List[Notification]:
        notifs = [
            AllSignedNotification(user_id, document_id, file_name).to_notification()
            for user_id in user_ids
        ]
        return self.notification_repository.save_all(notifs)

    def notify_signing_cancelled(self, user_ids: Iterable[UUID], document_id: UUID, file_name: str,
                                 reason: Optional[str] = None) -> List[Notification]:
        notifs = [
            SigningCancelledNotification(user_id, document_id, file_name, reason).to_notification()
            for user_id in user_ids
        ]
        return self.notification_repository.save_all(notifs)

    def notify_signature_reminder(self, user_id: UUID, document_id: UUID, file_name: str,
                                  due_date: Optional[datetime] = None, note: Optional[str] = None,
                                  overdue: bool = False) -> Notification:
        return self._send(SignatureReminderNotification(user_id, document_id, file_name, due_date, note, overdue))

    def get_notifications(self, user_id: UUID) -> List[Notification]:
        return self.notification_repository.find_by_user_id(user_id)

    def mark_as_read(self, notification_id: UUID) -> Optional[Notification]:
        return self.notification_repository.update(notification_id, {'read': True})
