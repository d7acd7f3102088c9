import uuid
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, String, DateTime, Enum, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class NotificationEvent(PyEnum):
    SIGNATURE_REQUESTED = "SIGNATURE_REQUESTED"
    SIGNATURE_RECEIVED = "SIGNATURE_RECEIVED"
    YOUR_TURN = "YOUR_TURN"
    ALL_SIGNED = "ALL_SIGNED"
    SIGNING_CANCELLED = "SIGNING_CANCELLED"
    SIGNATURE_REMINDER = "SIGNATURE_REMINDER"


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    message = Column(String(1024), nullable=False)
    event = Column(Enum(NotificationEvent), nullable=False)
    document_id = Column(Uuid, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    user_id = Column(Uuid, ForeignKey('users.id'), nullable=False)
    user = relationship("User", back_populates="notifications")
    read = Column(Boolean, default=False)
