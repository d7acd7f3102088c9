import uuid

from sqlalchemy import Column, Integer, BigInteger, ForeignKey, DateTime, String, Boolean, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class DocumentVersion(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_document_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid, ForeignKey("documents.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    storage_key = Column(String(500), nullable=False)
    file_name = Column(String(200), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    content_type = Column(String(100), nullable=False)
    file_hash = Column(String(64), nullable=True)
    uploaded_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    change_description = Column(String(1000), nullable=True)
    is_current = Column(Boolean, nullable=False, default=False)

    document = relationship("Document", back_populates="versions")
    uploader = relationship("User")
