# create_tables.py
import logging

from database import engine, Base
# Import every model so it registers with Base
from signing.documents.models import (  # noqa: F401
    User, Document, DocumentSignature, SigningCertificate, DocumentVersion, SignatureReminder
)
from signing.notifications.models.notification import Notification  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables():
    """Creates every table in the database"""
    logger.info("Tables to create: %s", list(Base.metadata.tables.keys()))
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_tables()
