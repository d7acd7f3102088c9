from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, List, Optional
from uuid import UUID

from pydantic import BaseModel

from signing.documents.models.document import DocumentType, SignatureStatus
from signing.documents.models.reminder import ReminderType
from signing.documents.models.signature import SigningMode, SignerStatus


class DocumentResponse(BaseModel):
    id: UUID
    group_id: UUID
    document_type: DocumentType
    file_name: str
    content_type: str
    file_size: int
    page_count: Optional[int] = None
    description: Optional[str] = None
    signature_status: SignatureStatus
    uploaded_by: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


@dataclass
class FileDownload:
    file_name: str
    content_type: str
    file_size: int
    stream: BinaryIO


# ── Signing workflow ──

class SignerInfo(BaseModel):
    signer_id: UUID
    signer_name: str
    signer_email: str
    signature_order: int
    status: SignerStatus
    signing_token: str
    signing_url: Optional[str] = None
    token_expires_at: datetime
    notification_sent: bool = False


class SendForSigningResponse(BaseModel):
    document_id: UUID
    file_name: str
    signature_status: SignatureStatus
    signing_mode: SigningMode
    due_date: Optional[datetime] = None
    total_signers: int
    signers: List[SignerInfo]
    sent_at: datetime


class SignDocumentResponse(BaseModel):
    document_id: UUID
    signature_id: UUID
    file_name: str
    document_status: SignatureStatus
    signed_at: datetime
    signer_name: str
    total_signers: int
    signed_count: int
    progress_percentage: float
    next_signer_id: Optional[UUID] = None
    next_signer_name: Optional[str] = None
    is_fully_signed: bool
    message: str


class SignatureDetail(BaseModel):
    id: UUID
    signer_id: UUID
    signer_name: str
    signer_email: str
    signature_order: int
    status: SignerStatus
    signed_at: Optional[datetime] = None
    is_pending: bool
    is_current_signer: bool = False


class SignatureStatusResponse(BaseModel):
    document_id: UUID
    file_name: str
    status: SignatureStatus
    signing_mode: Optional[SigningMode] = None
    total_signers: int
    signed_count: int
    progress_percentage: float
    due_date: Optional[datetime] = None
    next_signer_id: Optional[UUID] = None
    next_signer_name: Optional[str] = None
    signatures: List[SignatureDetail]


class CancelSigningResponse(BaseModel):
    document_id: UUID
    signature_status: SignatureStatus
    cancelled_signatures: int
    cancelled_at: datetime


class PendingSignatureResponse(BaseModel):
    document_id: UUID
    signature_id: UUID
    group_id: UUID
    file_name: str
    document_type: DocumentType
    document_status: SignatureStatus
    signing_mode: SigningMode
    signature_order: int
    signing_token: str
    signing_url: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    is_overdue: bool = False
    is_my_turn: bool
    message: Optional[str] = None
    requested_at: datetime


# ── Reminders ──

class ManualReminderResponse(BaseModel):
    document_id: UUID
    reminded_signer_ids: List[UUID]
    failed_signer_ids: List[UUID] = []
    sent_at: datetime


class ReminderHistoryEntry(BaseModel):
    id: UUID
    signature_id: UUID
    signer_id: UUID
    signer_name: str
    reminder_type: ReminderType
    sent_at: datetime
    sent_by: Optional[UUID] = None
    sent_by_name: Optional[str] = None
    message: Optional[str] = None


class ReminderHistoryResponse(BaseModel):
    document_id: UUID
    total_reminders: int
    reminders: List[ReminderHistoryEntry]


# ── Certificates ──

class CertificateSigner(BaseModel):
    signer_id: UUID
    signer_name: str
    signer_email: str
    signature_order: int
    signed_at: datetime
    ip_address: Optional[str] = None
    device_info: Optional[str] = None


class SigningCertificateResponse(BaseModel):
    certificate_id: str
    document_id: UUID
    file_name: str
    document_hash: str
    generated_at: datetime
    expires_at: datetime
    signers: List[CertificateSigner]
    certificate_pdf: bytes


class CertificateVerificationResult(BaseModel):
    certificate_id: str
    is_valid: bool
    hash_matches: bool
    is_revoked: bool
    is_expired: bool
    revocation_reason: Optional[str] = None
    document_id: UUID
    document_name: str
    total_signers: int
    generated_at: datetime
    expires_at: Optional[datetime] = None
    verified_at: datetime
    signers: List[CertificateSigner] = []


# ── Versions ──

class DocumentVersionResponse(BaseModel):
    id: UUID
    document_id: UUID
    version_number: int
    file_name: str
    file_size: int
    content_type: str
    uploaded_by: UUID
    uploader_name: Optional[str] = None
    uploaded_at: datetime
    change_description: Optional[str] = None
    is_current: bool


class DocumentVersionListResponse(BaseModel):
    document_id: UUID
    current_version_number: Optional[int] = None
    total_versions: int
    versions: List[DocumentVersionResponse]
