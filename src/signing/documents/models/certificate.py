import uuid

from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, Text, Boolean, Uuid
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class SigningCertificate(Base):
    """Proof-of-completion issued for a fully signed document."""
    __tablename__ = "signing_certificates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid, ForeignKey("documents.id"), nullable=False, index=True)
    certificate_id = Column(String(100), nullable=False, unique=True)
    document_hash = Column(String(500), nullable=False)
    file_name = Column(String(200), nullable=False)
    total_signers = Column(Integer, nullable=False)
    generated_at = Column(DateTime, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True)
    # JSON array of signer roster entries
    signers_json = Column(Text, nullable=True)

    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime, nullable=True)
    revocation_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    document = relationship("Document", back_populates="certificates")
