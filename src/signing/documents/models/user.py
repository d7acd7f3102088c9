import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Uuid
from sqlalchemy.orm import relationship

from database import Base
from signing.clock import utcnow


class User(Base):
    __tablename__ = 'users'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Documents uploaded by this user
    documents = relationship("Document", back_populates="uploader")

    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan"
    )
