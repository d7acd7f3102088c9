from .document_service import DocumentService
from .signing_service import SigningService
from .certificate_service import CertificateService
from .version_service import VersionService
from .reminder_service import ReminderService
from .token_service import SigningTokenService, TokenValidation
from .storage import FileStorage, LocalFileStorage
from .collaborators import GroupDirectory, VirusScanner, ScanResult
from .permission import GroupRole

__all__ = [
    'DocumentService', 'SigningService', 'CertificateService', 'VersionService', 'ReminderService',
    'SigningTokenService', 'TokenValidation',
    'FileStorage', 'LocalFileStorage',
    'GroupDirectory', 'VirusScanner', 'ScanResult', 'GroupRole',
]
