import uuid
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, Enum, Boolean, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class SigningMode(PyEnum):
    PARALLEL = "PARALLEL"
    SEQUENTIAL = "SEQUENTIAL"


class SignerStatus(PyEnum):
    SENT_FOR_SIGNING = "SENT_FOR_SIGNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DocumentSignature(Base):
    __tablename__ = "document_signatures"
    __table_args__ = (
        UniqueConstraint("document_id", "signer_id", name="uq_document_signatures_document_signer"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid, ForeignKey("documents.id"), nullable=False, index=True)
    signer_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    signature_order = Column(Integer, nullable=False)
    status = Column(Enum(SignerStatus), nullable=False, default=SignerStatus.SENT_FOR_SIGNING)
    signing_mode = Column(Enum(SigningMode), nullable=False, default=SigningMode.PARALLEL)

    signing_token = Column(String(500), nullable=True, unique=True)
    token_expires_at = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    message = Column(String(1000), nullable=True)
    is_notification_sent = Column(Boolean, nullable=False, default=False)

    signed_at = Column(DateTime, nullable=True)
    signature_reference = Column(String(500), nullable=True)
    # JSON: ip_address, device_info, gps_coordinates, signed_at
    signature_metadata = Column(String(2000), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    document = relationship("Document", back_populates="signatures")
    signer = relationship("User")
    reminders = relationship("SignatureReminder", back_populates="signature")

    @property
    def is_completed(self) -> bool:
        return self.status == SignerStatus.COMPLETED
