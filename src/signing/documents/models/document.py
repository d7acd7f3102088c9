import uuid
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Enum, ForeignKey, Boolean, Uuid, true
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class DocumentType(PyEnum):
    OWNERSHIP_AGREEMENT = "OWNERSHIP_AGREEMENT"
    MAINTENANCE_CONTRACT = "MAINTENANCE_CONTRACT"
    INSURANCE_POLICY = "INSURANCE_POLICY"
    CHECK_IN_REPORT = "CHECK_IN_REPORT"
    CHECK_OUT_REPORT = "CHECK_OUT_REPORT"
    OTHER = "OTHER"


class SignatureStatus(PyEnum):
    DRAFT = "DRAFT"
    SENT_FOR_SIGNING = "SENT_FOR_SIGNING"
    PARTIALLY_SIGNED = "PARTIALLY_SIGNED"
    FULLY_SIGNED = "FULLY_SIGNED"
    CANCELLED = "CANCELLED"


class Document(Base):
    __tablename__ = 'documents'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, nullable=False, index=True)
    document_type = Column(Enum(DocumentType), nullable=False, default=DocumentType.OTHER)

    # Mirrors the current version
    file_name = Column(String(200), nullable=False)
    content_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    storage_key = Column(String(500), nullable=False)
    file_hash = Column(String(64), nullable=True, index=True)
    page_count = Column(Integer, nullable=True)

    description = Column(String(1000), nullable=True)
    signature_status = Column(Enum(SignatureStatus), nullable=False, default=SignatureStatus.DRAFT)
    is_virus_scanned = Column(Boolean, nullable=False, default=False)

    uploaded_by = Column(Uuid, ForeignKey('users.id'), nullable=False)
    uploader = relationship("User", back_populates="documents")

    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Uuid, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Bumped on every UPDATE; a flush against an older value raises StaleDataError
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    signatures = relationship("DocumentSignature", back_populates="document", order_by="DocumentSignature.signature_order")
    versions = relationship("DocumentVersion", back_populates="document", order_by="DocumentVersion.version_number")
    certificates = relationship("SigningCertificate", back_populates="document")

    @classmethod
    def visible(cls, include_deleted: bool = False):
        """Query predicate hiding soft-deleted documents (and through joins, their dependents)."""
        if include_deleted:
            return true()
        return cls.is_deleted.is_(False)
