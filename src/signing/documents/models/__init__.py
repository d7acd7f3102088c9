from .user import User
from .document import Document, DocumentType, SignatureStatus
from .signature import DocumentSignature, SigningMode, SignerStatus
from .certificate import SigningCertificate
from .version import DocumentVersion
from .reminder import SignatureReminder, ReminderType
# User.notifications needs the Notification mapper registered
from signing.notifications.models.notification import Notification  # noqa: F401

__all__ = [
    'User', 'Document', 'DocumentType', 'SignatureStatus',
    'DocumentSignature', 'SigningMode', 'SignerStatus',
    'SigningCertificate', 'DocumentVersion',
    'SignatureReminder', 'ReminderType',
]
