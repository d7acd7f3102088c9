from .document_repository import DocumentRepository
from .signature_repository import SignatureRepository
from .version_repository import VersionRepository
from .certificate_repository import CertificateRepository
from .reminder_repository import ReminderRepository

__all__ = ['DocumentRepository', 'SignatureRepository', 'VersionRepository', 'CertificateRepository',
           'ReminderRepository']
