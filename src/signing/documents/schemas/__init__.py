from .document_schemas import (
    DocumentResponse, FileDownload,
    SignerInfo, SendForSigningResponse, SignDocumentResponse,
    SignatureDetail, SignatureStatusResponse, CancelSigningResponse, PendingSignatureResponse,
    ManualReminderResponse, ReminderHistoryEntry, ReminderHistoryResponse,
    CertificateSigner, SigningCertificateResponse, CertificateVerificationResult,
    DocumentVersionResponse, DocumentVersionListResponse,
)

__all__ = [
    'DocumentResponse', 'FileDownload',
    'SignerInfo', 'SendForSigningResponse', 'SignDocumentResponse',
    'SignatureDetail', 'SignatureStatusResponse', 'CancelSigningResponse', 'PendingSignatureResponse',
    'ManualReminderResponse', 'ReminderHistoryEntry', 'ReminderHistoryResponse',
    'CertificateSigner', 'SigningCertificateResponse', 'CertificateVerificationResult',
    'DocumentVersionResponse', 'DocumentVersionListResponse',
]
