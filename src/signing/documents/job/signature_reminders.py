import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from config import settings
from database import SessionLocal
from signing.clock import Clock
from signing.documents.models.reminder import ReminderType, SignatureReminder
from signing.documents.models.signature import DocumentSignature, SigningMode
from signing.documents.repositories.signature_repository import SignatureRepository
from signing.notifications.repositories.notification_repository import NotificationRepository
from signing.notifications.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

# (lower bound exclusive, upper bound inclusive) on the time left before the due date
REMINDER_WINDOWS = {
    ReminderType.THREE_DAYS_BEFORE: (timedelta(days=2, hours=12), timedelta(days=3)),
    ReminderType.ONE_DAY_BEFORE: (timedelta(hours=12), timedelta(days=1)),
}

# Overdue signatures are reminded once, within this long after the due date
OVERDUE_WINDOW = timedelta(days=1)


def reminder_type_for(time_left: timedelta) -> Optional[ReminderType]:
    for reminder_type, (lower, upper) in REMINDER_WINDOWS.items():
        if lower < time_left <= upper:
            return reminder_type
    return None


def _should_remind(repository: SignatureRepository, signature: DocumentSignature,
                   reminder_type: ReminderType) -> bool:
    if any(r.reminder_type == reminder_type for r in signature.reminders):
        return False
    if (signature.signing_mode == SigningMode.SEQUENTIAL
            and repository.find_incomplete_before(signature.document_id, signature.signature_order)):
        return False
    return True


def _send_reminder(session: Session, notifier: NotificationService, signature: DocumentSignature,
                   reminder_type: ReminderType, now: datetime) -> bool:
    try:
        session.add(SignatureReminder(signature_id=signature.id, reminder_type=reminder_type, sent_at=now))
        notifier.notify_signature_reminder(
            signature.signer_id, signature.document_id, signature.document.file_name, signature.due_date,
            overdue=reminder_type == ReminderType.OVERDUE,
        )
        session.commit()
        return True
    except Exception:
        logger.exception("Failed to send %s reminder for signature %s", reminder_type.value, signature.id)
        session.rollback()
        return False


def send_signature_reminders(session: Session, notifier: NotificationService,
                             clock: Optional[Clock] = None) -> int:
    """
    Reminds pending signers whose due date is approaching, and once more
    right after it has passed. Each signature gets at most one reminder of
    each type. Returns the number of reminders sent.
    """
    clock = clock or Clock()
    now = clock.now()
    repository = SignatureRepository(session)

    due = []
    for signature in repository.find_pending_due_after(now):
        reminder_type = reminder_type_for(signature.due_date - now)
        if reminder_type is not None:
            due.append((signature, reminder_type))
    for signature in repository.find_pending_overdue(now, OVERDUE_WINDOW):
        due.append((signature, ReminderType.OVERDUE))

    sent = 0
    for signature, reminder_type in due:
        if _should_remind(repository, signature, reminder_type) and _send_reminder(
                session, notifier, signature, reminder_type, now):
            sent += 1

    logger.info("Sent %d signature reminders", sent)
    return sent


def start_reminder_job() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    def job():
        with SessionLocal() as session:
            notifier = NotificationService(NotificationRepository(session))
            send_signature_reminders(session, notifier)

    scheduler.add_job(job, 'interval', hours=settings.REMINDER_INTERVAL_HOURS)
    scheduler.start()
    return scheduler
