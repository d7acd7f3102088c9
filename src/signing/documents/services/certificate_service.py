"""
Completion certificates: issued for fully signed documents, verifiable by id
(optionally against a document hash) and revocable.

Every call to generate_certificate issues a new certificate; earlier ones
stay verifiable under their own id.
"""
import hashlib
import json
import logging
import string
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from config import settings
from signing.clock import Clock, random_bytes
from signing.documents.exceptions import InvalidOperationError, NotFoundError
from signing.documents.models.certificate import SigningCertificate
from signing.documents.models.document import SignatureStatus
from signing.documents.repositories.certificate_repository import CertificateRepository
from signing.documents.repositories.document_repository import DocumentRepository
from signing.documents.repositories.signature_repository import SignatureRepository
from signing.documents.schemas import (
    CertificateSigner, CertificateVerificationResult, SigningCertificateResponse,
)
from signing.documents.services.access import require_member
from signing.documents.services.certificate_renderer import CertificateRenderer
from signing.documents.services.collaborators import GroupDirectory
from signing.documents.services.storage import FileStorage

logger = logging.getLogger(__name__)

CERTIFICATE_PREFIX = "CERT"
SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 8


def add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 into a non-leap year
        return moment.replace(year=moment.year + years, day=28)


class CertificateService:

    def __init__(self, session: Session, directory: GroupDirectory, storage: FileStorage,
                 clock: Optional[Clock] = None,
                 random_source: Optional[Callable[[int], bytes]] = None,
                 renderer: Optional[CertificateRenderer] = None,
                 verification_base_url: Optional[str] = None,
                 validity_years: Optional[int] = None):
        self.session = session
        self.directory = directory
        self.storage = storage
        self.clock = clock or Clock()
        self.random_source = random_source or random_bytes
        self.renderer = renderer or CertificateRenderer()
        self.verification_base_url = verification_base_url or settings.VERIFICATION_BASE_URL
        self.validity_years = validity_years or settings.CERTIFICATE_VALIDITY_YEARS
        self.documents = DocumentRepository(session)
        self.signatures = SignatureRepository(session)
        self.certificates = CertificateRepository(session)

    def new_certificate_id(self, now: datetime) -> str:
        suffix = "".join(SUFFIX_ALPHABET[b % len(SUFFIX_ALPHABET)] for b in self.random_source(SUFFIX_LENGTH))
        return f"{CERTIFICATE_PREFIX}-{now:%Y%m%d%H%M%S}-{suffix}"

    def qr_content(self, certificate_id: str, document_hash: str) -> str:
        if self.verification_base_url:
            return f"{self.verification_base_url.rstrip('/')}/verify-certificate/{certificate_id}?hash={document_hash}"
        return f"CERT:{certificate_id}|HASH:{document_hash}"

    def _document_hash(self, storage_key: str) -> str:
        try:
            with self.storage.get(storage_key) as stream:
                return hashlib.sha256(stream.read()).hexdigest()
        except FileNotFoundError:
            raise NotFoundError("Document content not found in storage")

    def generate_certificate(self, document_id: UUID, user_id: UUID) -> SigningCertificateResponse:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)

        if document.signature_status != SignatureStatus.FULLY_SIGNED:
            raise InvalidOperationError(
                "Certificate can only be generated for fully signed documents "
                f"(current status: {document.signature_status.value})"
            )

        document_hash = self._document_hash(document.storage_key)
        signers = [
            self._roster_entry(s)
            for s in self.signatures.find_by_document(document_id)
            if s.is_completed
        ]

        now = self.clock.now()
        certificate_id = self.new_certificate_id(now)
        expires_at = add_years(now, self.validity_years)
        pdf = self.renderer.render(
            certificate_id, document.file_name, document_hash, now, expires_at,
            signers, self.qr_content(certificate_id, document_hash),
        )

        certificate = SigningCertificate(
            document_id=document.id,
            certificate_id=certificate_id,
            document_hash=document_hash,
            file_name=document.file_name,
            total_signers=len(signers),
            generated_at=now,
            expires_at=expires_at,
            signers_json=json.dumps([s.model_dump(mode="json") for s in signers]),
            created_at=now,
            updated_at=now,
        )
        try:
            self.certificates.add(certificate)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Certificate %s generated for document %s", certificate_id, document_id)
        return SigningCertificateResponse(
            certificate_id=certificate_id,
            document_id=document.id,
            file_name=document.file_name,
            document_hash=document_hash,
            generated_at=now,
            expires_at=expires_at,
            signers=signers,
            certificate_pdf=pdf,
        )

    @staticmethod
    def _roster_entry(signature) -> CertificateSigner:
        metadata = json.loads(signature.signature_metadata) if signature.signature_metadata else {}
        return CertificateSigner(
            signer_id=signature.signer_id,
            signer_name=signature.signer.name,
            signer_email=signature.signer.email,
            signature_order=signature.signature_order,
            signed_at=signature.signed_at,
            ip_address=metadata.get("ip_address"),
            device_info=metadata.get("device_info"),
        )

    def verify_certificate(self, certificate_id: str, document_hash: Optional[str] = None) -> CertificateVerificationResult:
        """
        Reports whether a certificate is still valid. Omitting the hash skips
        the content comparison.
        """
        certificate = self.certificates.get_by_certificate_id(certificate_id)
        if not certificate:
            raise NotFoundError("Certificate not found")

        now = self.clock.now()
        is_expired = certificate.expires_at is not None and now > certificate.expires_at
        hash_matches = (
            document_hash is None
            or document_hash.strip().lower() == certificate.document_hash.lower()
        )
        is_valid = not certificate.is_revoked and not is_expired and hash_matches

        return CertificateVerificationResult(
            certificate_id=certificate.certificate_id,
            is_valid=is_valid,
            hash_matches=hash_matches,
            is_revoked=certificate.is_revoked,
            is_expired=is_expired,
            revocation_reason=certificate.revocation_reason,
            document_id=certificate.document_id,
            document_name=certificate.file_name,
            total_signers=certificate.total_signers,
            generated_at=certificate.generated_at,
            expires_at=certificate.expires_at,
            verified_at=now,
            signers=self._decode_roster(certificate.signers_json),
        )

    @staticmethod
    def _decode_roster(signers_json: Optional[str]) -> List[CertificateSigner]:
        if not signers_json:
            return []
        return [CertificateSigner.model_validate(entry) for entry in json.loads(signers_json)]

    def revoke_certificate(self, certificate_id: str, reason: str) -> CertificateVerificationResult:
        """Revocation is permanent. Revoking twice keeps the first reason."""
        certificate = self.certificates.get_by_certificate_id(certificate_id)
        if not certificate:
            raise NotFoundError("Certificate not found")

        if not certificate.is_revoked:
            now = self.clock.now()
            certificate.is_revoked = True
            certificate.revoked_at = now
            certificate.revocation_reason = reason
            certificate.updated_at = now
            self.session.commit()
            logger.info("Certificate %s revoked: %s", certificate_id, reason)
        else:
            logger.info("Certificate %s already revoked", certificate_id)

        return self.verify_certificate(certificate_id)
