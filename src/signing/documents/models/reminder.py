import uuid
from enum import Enum as PyEnum

from sqlalchemy import Column, ForeignKey, DateTime, Enum, String, Uuid
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class ReminderType(PyEnum):
    THREE_DAYS_BEFORE = "THREE_DAYS_BEFORE"
    ONE_DAY_BEFORE = "ONE_DAY_BEFORE"
    OVERDUE = "OVERDUE"
    MANUAL = "MANUAL"


class SignatureReminder(Base):
    __tablename__ = "signature_reminders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    signature_id = Column(Uuid, ForeignKey("document_signatures.id"), nullable=False, index=True)
    reminder_type = Column(Enum(ReminderType), nullable=False)
    sent_at = Column(DateTime, default=utcnow, nullable=False)

    # Only set on manual reminders
    sent_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    message = Column(String(1000), nullable=True)

    signature = relationship("DocumentSignature", back_populates="reminders")
    sender = relationship("User")
