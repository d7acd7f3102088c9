from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import START, FailingForUserRepository, send, sign, upload_pdf
from signing.documents.exceptions import (
    InvalidArgumentError, InvalidOperationError, NotFoundError, UnauthorizedError,
)
from signing.documents.job.signature_reminders import send_signature_reminders
from signing.documents.models import ReminderType, SignatureReminder, SigningMode
from signing.documents.services.reminder_service import ReminderService
from signing.notifications.models.notification import Notification, NotificationEvent
from signing.notifications.services.notification_service import NotificationService


@pytest.fixture
def document(document_service, group_id, users):
    return upload_pdf(document_service, group_id, users["alice"])


def reminders_for(session, user):
    return (
        session.query(Notification)
        .filter(Notification.user_id == user.id, Notification.event == NotificationEvent.SIGNATURE_REMINDER)
        .all()
    )


# ── Manual reminders ──

def test_admin_reminds_every_pending_parallel_signer(session, signing_service, reminder_service, document, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    tokens = send(signing_service, document, [alice, bob, carol], alice)
    sign(signing_service, document, alice, tokens[alice.id])

    result = reminder_service.send_manual_reminder(document.id, alice.id, message="Board meets Friday")

    assert result.reminded_signer_ids == [bob.id, carol.id]
    assert result.failed_signer_ids == []
    assert result.sent_at == START
    assert reminders_for(session, alice) == []
    assert "Message: Board meets Friday" in reminders_for(session, bob)[0].message

    rows = session.query(SignatureReminder).all()
    assert len(rows) == 2
    assert all(r.reminder_type == ReminderType.MANUAL and r.sent_by == alice.id for r in rows)
    assert all(r.message == "Board meets Friday" for r in rows)


def test_sequential_reminder_goes_to_current_signer_only(session, signing_service, reminder_service,
                                                        document, users):
    bob, carol = users["bob"], users["carol"]
    tokens = send(signing_service, document, [bob, carol], users["alice"], mode=SigningMode.SEQUENTIAL)

    assert reminder_service.send_manual_reminder(document.id, users["alice"].id).reminded_signer_ids == [bob.id]

    sign(signing_service, document, bob, tokens[bob.id])
    assert reminder_service.send_manual_reminder(document.id, users["alice"].id).reminded_signer_ids == [carol.id]


def test_reminder_mentions_due_date(session, signing_service, reminder_service, document, users):
    bob = users["bob"]
    send(signing_service, document, [bob], users["alice"], due_date=START + timedelta(days=10))

    reminder_service.send_manual_reminder(document.id, users["alice"].id)

    assert "due on 2025-01-25" in reminders_for(session, bob)[0].message


def test_uploader_may_remind(signing_service, reminder_service, document_service, group_id, users):
    bob, carol = users["bob"], users["carol"]
    own = upload_pdf(document_service, group_id, bob, file_name="bob.pdf")
    send(signing_service, own, [carol], bob)

    assert reminder_service.send_manual_reminder(own.id, bob.id).reminded_signer_ids == [carol.id]


def test_plain_member_may_not_remind(signing_service, reminder_service, document, users):
    send(signing_service, document, [users["bob"]], users["alice"])
    with pytest.raises(UnauthorizedError):
        reminder_service.send_manual_reminder(document.id, users["carol"].id)


def test_outsider_may_not_remind(signing_service, reminder_service, document, users):
    send(signing_service, document, [users["bob"]], users["alice"])
    with pytest.raises(UnauthorizedError):
        reminder_service.send_manual_reminder(document.id, users["dave"].id)


def test_draft_document_has_no_one_to_remind(reminder_service, document, users):
    with pytest.raises(InvalidOperationError):
        reminder_service.send_manual_reminder(document.id, users["alice"].id)


def test_cancelled_workflow_cannot_be_reminded(signing_service, reminder_service, document, users):
    send(signing_service, document, [users["bob"]], users["alice"])
    signing_service.cancel_signing(document.id, users["alice"].id)

    with pytest.raises(InvalidOperationError):
        reminder_service.send_manual_reminder(document.id, users["alice"].id)


def test_reminder_message_length_is_capped(signing_service, reminder_service, document, users):
    send(signing_service, document, [users["bob"]], users["alice"])
    with pytest.raises(InvalidArgumentError):
        reminder_service.send_manual_reminder(document.id, users["alice"].id, message="x" * 1001)


def test_remind_unknown_document(reminder_service, users):
    with pytest.raises(NotFoundError):
        reminder_service.send_manual_reminder(uuid4(), users["alice"].id)


def test_failed_delivery_is_reported_without_reminder_row(session, directory, clock, signing_service, document, users):
    bob, carol = users["bob"], users["carol"]
    send(signing_service, document, [bob, carol], users["alice"])
    notifier = NotificationService(FailingForUserRepository(session, bob.id))
    service = ReminderService(session, directory, notifier, clock=clock)

    result = service.send_manual_reminder(document.id, users["alice"].id)

    assert result.reminded_signer_ids == [carol.id]
    assert result.failed_signer_ids == [bob.id]
    assert [r.signature.signer_id for r in session.query(SignatureReminder).all()] == [carol.id]


# ── History ──

def test_history_lists_scheduled_and_manual_reminders(session, notifier, clock, signing_service, reminder_service,
                                                      document, users):
    alice, bob = users["alice"], users["bob"]
    send(signing_service, document, [bob], alice, due_date=START + timedelta(hours=71))

    reminder_service.send_manual_reminder(document.id, alice.id, message="Please")
    clock.advance(hours=1)
    send_signature_reminders(session, notifier, clock)

    history = reminder_service.get_reminder_history(document.id, bob.id)

    assert history.total_reminders == 2
    manual, scheduled = history.reminders
    assert manual.reminder_type == ReminderType.MANUAL
    assert manual.sent_by == alice.id
    assert manual.sent_by_name == "Alice"
    assert manual.message == "Please"
    assert manual.signer_name == "Bob"
    assert scheduled.reminder_type == ReminderType.THREE_DAYS_BEFORE
    assert scheduled.sent_by is None
    assert scheduled.sent_at == START + timedelta(hours=1)


def test_history_of_document_without_reminders(reminder_service, document, users):
    history = reminder_service.get_reminder_history(document.id, users["carol"].id)
    assert history.total_reminders == 0
    assert history.reminders == []


def test_history_requires_membership(reminder_service, document, users):
    with pytest.raises(UnauthorizedError):
        reminder_service.get_reminder_history(document.id, users["dave"].id)


def test_history_of_deleted_document_is_not_found(signing_service, reminder_service, document_service,
                                                  document, users):
    send(signing_service, document, [users["bob"]], users["alice"])
    reminder_service.send_manual_reminder(document.id, users["alice"].id)
    document_service.delete_document(document.id, users["alice"].id)

    with pytest.raises(NotFoundError):
        reminder_service.get_reminder_history(document.id, users["alice"].id)
