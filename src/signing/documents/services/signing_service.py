"""
Signing workflow: sending a document out for signatures, collecting them
(in parallel or in a fixed order), listing what a signer still has to sign and
cancelling an in-flight workflow.

Document status moves Draft -> SentForSigning -> PartiallySigned -> FullySigned,
or from SentForSigning/PartiallySigned to the terminal Cancelled.
"""
import base64
import binascii
import json
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from signing.clock import Clock
from signing.documents.exceptions import (
    ConflictError, DocumentError, InvalidArgumentError, InvalidOperationError,
    NotFoundError, UnauthorizedError,
)
from signing.documents.models.document import Document, SignatureStatus
from signing.documents.models.signature import DocumentSignature, SignerStatus, SigningMode
from signing.documents.models.user import User
from signing.documents.repositories.document_repository import DocumentRepository
from signing.documents.repositories.signature_repository import SignatureRepository
from signing.documents.schemas import (
    CancelSigningResponse, PendingSignatureResponse, SendForSigningResponse, SignatureDetail,
    SignatureStatusResponse, SignDocumentResponse, SignerInfo,
)
from signing.documents.services.access import require_document_action, require_member
from signing.documents.services.collaborators import GroupDirectory
from signing.documents.services.storage import FileStorage
from signing.documents.services.token_service import SigningTokenService
from signing.notifications.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

MIN_TOKEN_EXPIRATION_DAYS = 1
MAX_TOKEN_EXPIRATION_DAYS = 365

ACTIVE_STATUSES = (SignatureStatus.SENT_FOR_SIGNING, SignatureStatus.PARTIALLY_SIGNED)

# Sign attempts before a concurrent document update is reported as a conflict
MAX_SIGN_ATTEMPTS = 3


def decode_signature_data(signature_data: str) -> bytes:
    """
    Signature payloads arrive as base64 (optionally a data URL) or as plain text.

    Anything that parses as strict base64 is treated as base64, so short plain
    text made only of base64 characters with a length divisible by four
    (``"abcd"``, ``"Test"``) is decoded to binary rather than stored as UTF-8.
    Callers sending typed signatures should use a data URL or include a space
    or punctuation outside the base64 alphabet.
    """
    data = signature_data
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return signature_data.encode("utf-8")


def progress_percentage(signed_count: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(signed_count / total * 100, 2)


class SigningService:

    def __init__(self, session: Session, directory: GroupDirectory, notifier: NotificationService,
                 storage: FileStorage, token_service: Optional[SigningTokenService] = None,
                 clock: Optional[Clock] = None, signing_base_url: Optional[str] = None):
        self.session = session
        self.directory = directory
        self.notifier = notifier
        self.storage = storage
        self.clock = clock or Clock()
        self.token_service = token_service or SigningTokenService(clock=self.clock)
        self.signing_base_url = signing_base_url
        self.documents = DocumentRepository(session)
        self.signatures = SignatureRepository(session)

    def _notify(self, description: str, action: Callable, *args, **kwargs) -> bool:
        """Delivers a notification; failures are logged and never reach the caller."""
        try:
            action(*args, **kwargs)
            return True
        except Exception:
            logger.exception("Failed to send %s notification", description)
            self.session.rollback()
            return False

    def send_for_signing(
        self,
        document_id: UUID,
        signer_ids: List[UUID],
        requester_id: UUID,
        signing_mode: SigningMode = SigningMode.PARALLEL,
        due_date: Optional[datetime] = None,
        message: Optional[str] = None,
        token_expiration_days: Optional[int] = None,
    ) -> SendForSigningResponse:
        """
        Creates one signature row per signer, in list order, and moves the
        document to SentForSigning. Every check runs before anything is written.
        """
        if token_expiration_days is None:
            token_expiration_days = settings.SIGNING_TOKEN_EXPIRATION_DAYS

        try:
            document = self.documents.get(document_id, for_update=True)
            if not document:
                raise NotFoundError("Document not found")
            require_member(self.directory, document.group_id, requester_id)
            signers = self._validate_send_request(
                document, signer_ids, due_date, token_expiration_days
            )

            now = self.clock.now()
            rows = []
            for index, signer in enumerate(signers):
                rows.append(DocumentSignature(
                    document_id=document.id,
                    signer_id=signer.id,
                    signature_order=index + 1,
                    status=SignerStatus.SENT_FOR_SIGNING,
                    signing_mode=signing_mode,
                    signing_token=self.token_service.generate_token(
                        document.id, signer.id, token_expiration_days
                    ),
                    token_expires_at=self.token_service.expiry_for(token_expiration_days),
                    due_date=due_date,
                    message=message,
                    created_at=now,
                    updated_at=now,
                ))
            self.signatures.add_all(rows)

            document.signature_status = SignatureStatus.SENT_FOR_SIGNING
            document.updated_at = now
            self.session.commit()
        except DocumentError:
            self.session.rollback()
            raise

        logger.info(
            "Document %s sent for %s signing to %d signers by %s",
            document_id, signing_mode.value, len(rows), requester_id,
        )

        # _notify may roll back, so the flags are written only after every delivery
        file_name = document.file_name
        delivered = {}
        for row in rows:
            delivered[row.id] = self._notify(
                "signature requested", self.notifier.notify_signature_requested,
                row.signer_id, document_id, file_name, due_date, message,
            )
        if signing_mode == SigningMode.SEQUENTIAL:
            self._notify(
                "your turn", self.notifier.notify_your_turn,
                rows[0].signer_id, document.id, document.file_name,
            )
        for row in rows:
            row.is_notification_sent = delivered[row.id]
        self.session.commit()

        return SendForSigningResponse(
            document_id=document.id,
            file_name=document.file_name,
            signature_status=document.signature_status,
            signing_mode=signing_mode,
            due_date=due_date,
            total_signers=len(rows),
            signers=[self._signer_info(row, signer) for row, signer in zip(rows, signers)],
            sent_at=now,
        )

    def _validate_send_request(self, document: Document, signer_ids: List[UUID],
                               due_date: Optional[datetime], token_expiration_days: int) -> List[User]:
        if not signer_ids:
            raise InvalidArgumentError("At least one signer is required")

        if len(set(signer_ids)) != len(signer_ids):
            raise InvalidArgumentError("Signer list contains duplicates")

        non_members = [s for s in signer_ids if not self.directory.is_member(document.group_id, s)]
        if non_members:
            raise InvalidArgumentError(
                "Signers are not members of the group: " + ", ".join(str(s) for s in non_members)
            )

        if document.signature_status != SignatureStatus.DRAFT:
            raise InvalidOperationError(
                f"Only draft documents can be sent for signing (current status: {document.signature_status.value})"
            )

        if due_date is not None and due_date <= self.clock.now():
            raise InvalidArgumentError("Due date must be in the future")

        if not MIN_TOKEN_EXPIRATION_DAYS <= token_expiration_days <= MAX_TOKEN_EXPIRATION_DAYS:
            raise InvalidArgumentError(
                f"Token expiration must be between {MIN_TOKEN_EXPIRATION_DAYS} and "
                f"{MAX_TOKEN_EXPIRATION_DAYS} days"
            )

        users = {u.id: u for u in self.session.query(User).filter(User.id.in_(signer_ids)).all()}
        missing = [s for s in signer_ids if s not in users]
        if missing:
            raise InvalidArgumentError("Unknown signers: " + ", ".join(str(s) for s in missing))
        return [users[s] for s in signer_ids]

    def _signer_info(self, row: DocumentSignature, signer: User) -> SignerInfo:
        signing_url = None
        if self.signing_base_url:
            signing_url = SigningTokenService.signing_url(row.signing_token, self.signing_base_url)
        return SignerInfo(
            signer_id=signer.id,
            signer_name=signer.name,
            signer_email=signer.email,
            signature_order=row.signature_order,
            status=row.status,
            signing_token=row.signing_token,
            signing_url=signing_url,
            token_expires_at=row.token_expires_at,
            notification_sent=row.is_notification_sent,
        )

    def _check_token(self, document_id: UUID, token: str, signer_id: UUID) -> None:
        validation = self.token_service.validate_token(token)
        if validation.document_id != document_id or validation.signer_id != signer_id:
            logger.warning("Signing token rejected for document %s: malformed or mismatched", document_id)
            raise UnauthorizedError("Invalid signing token")
        if not validation.is_valid:
            logger.warning("Signing token rejected for document %s: expired", document_id)
            raise UnauthorizedError("Signing token has expired")

    def _find_signature(self, document_id: UUID, token: str, signer_id: UUID) -> DocumentSignature:
        signature = self.signatures.find_for_signer(document_id, signer_id, token)
        if not signature:
            logger.warning("Signing token rejected for document %s: no matching signature", document_id)
            raise UnauthorizedError("Invalid signing token")
        if signature.token_expires_at is not None and signature.token_expires_at < self.clock.now():
            logger.warning("Signing token rejected for document %s: expired", document_id)
            raise UnauthorizedError("Signing token has expired")
        return signature

    def _apply_signature(self, document_id: UUID, token: str, signature_data: str,
                         signer_id: UUID, metadata: dict):
        document = self.documents.get(document_id, for_update=True)
        if not document:
            raise NotFoundError("Document not found")

        all_signatures = self.signatures.find_by_document(document_id, refresh=True)
        signature = self._find_signature(document_id, token, signer_id)
        require_member(self.directory, document.group_id, signer_id)

        if not signature_data:
            raise InvalidArgumentError("Signature data is required")
        if len(signature_data) > settings.MAX_SIGNATURE_DATA_BYTES:
            raise InvalidArgumentError(
                f"Signature data exceeds {settings.MAX_SIGNATURE_DATA_BYTES // (1024 * 1024)} MB"
            )

        if document.signature_status == SignatureStatus.CANCELLED or signature.status == SignerStatus.CANCELLED:
            raise InvalidOperationError("Signing has been cancelled for this document")
        if signature.status == SignerStatus.COMPLETED:
            raise ConflictError("You have already signed this document")
        if document.signature_status not in ACTIVE_STATUSES:
            raise InvalidOperationError(
                f"Document is not open for signing (current status: {document.signature_status.value})"
            )

        if signature.signing_mode == SigningMode.SEQUENTIAL:
            pending_before = self.signatures.find_incomplete_before(document_id, signature.signature_order)
            if pending_before:
                raise ConflictError(
                    "Sequential signing: all previous signers must sign first "
                    f"({len(pending_before)} still pending)"
                )

        now = self.clock.now()
        stored_key = self.storage.put(
            decode_signature_data(signature_data),
            f"signatures/{document_id}/{signer_id}_{uuid.uuid4()}.png",
            "image/png",
        )
        try:
            signature.status = SignerStatus.COMPLETED
            signature.signed_at = now
            signature.signature_reference = stored_key
            signature.signature_metadata = json.dumps(dict(metadata, signed_at=now.isoformat()))
            signature.updated_at = now

            if all(s.is_completed for s in all_signatures):
                document.signature_status = SignatureStatus.FULLY_SIGNED
            else:
                document.signature_status = SignatureStatus.PARTIALLY_SIGNED
            document.updated_at = now
        except Exception:
            self.storage.delete(stored_key)
            raise
        return document, signature, all_signatures, now, stored_key

    def sign_document(
        self,
        document_id: UUID,
        token: str,
        signature_data: str,
        signer_id: UUID,
        ip_address: Optional[str] = None,
        device_info: Optional[str] = None,
        user_agent: Optional[str] = None,
        gps_coordinates: Optional[str] = None,
    ) -> SignDocumentResponse:
        """
        Applies one signer's signature.

        The order check, the signature write and the document status recompute
        are committed together. The document row is locked where the backend
        supports it; otherwise a concurrent signer bumps the document's
        ``version_id`` first, the flush raises ``StaleDataError`` and the whole
        unit of work is replayed against fresh rows.
        """
        self._check_token(document_id, token, signer_id)

        metadata = {
            "ip_address": ip_address,
            "device_info": device_info,
            "user_agent": user_agent,
            "gps_coordinates": gps_coordinates,
        }
        attempt = 1
        while True:
            stored_key = None
            try:
                document, signature, all_signatures, now, stored_key = self._apply_signature(
                    document_id, token, signature_data, signer_id, metadata
                )
                signed_count = sum(1 for s in all_signatures if s.is_completed)
                total = len(all_signatures)
                is_fully_signed = signed_count == total
                self.session.commit()
                break
            except StaleDataError:
                self.session.rollback()
                if stored_key:
                    self.storage.delete(stored_key)
                if attempt >= MAX_SIGN_ATTEMPTS:
                    logger.error("Giving up signing document %s for %s after %d concurrent updates",
                                 document_id, signer_id, attempt)
                    raise ConflictError("Document was modified concurrently, please try again")
                logger.warning("Document %s changed while %s was signing, retrying (attempt %d)",
                               document_id, signer_id, attempt)
                attempt += 1
            except Exception:
                self.session.rollback()
                if stored_key:
                    self.storage.delete(stored_key)
                raise

        logger.info(
            "Signer %s signed document %s (%d/%d)", signer_id, document_id, signed_count, total
        )
        if is_fully_signed:
            logger.info("Document %s is fully signed", document_id)

        signer_name = signature.signer.name
        next_signature = None
        if signature.signing_mode == SigningMode.SEQUENTIAL and not is_fully_signed:
            next_signature = SignatureRepository.next_pending(all_signatures)

        # Notifications may roll back the session, so the response is built first
        response = SignDocumentResponse(
            document_id=document.id,
            signature_id=signature.id,
            file_name=document.file_name,
            document_status=document.signature_status,
            signed_at=now,
            signer_name=signer_name,
            total_signers=total,
            signed_count=signed_count,
            progress_percentage=progress_percentage(signed_count, total),
            next_signer_id=next_signature.signer_id if next_signature else None,
            next_signer_name=next_signature.signer.name if next_signature else None,
            is_fully_signed=is_fully_signed,
            message="Document fully signed by all parties" if is_fully_signed else "Signature recorded",
        )
        parties = [document.uploaded_by]
        parties += [s.signer_id for s in all_signatures if s.signer_id not in parties]
        file_name = document.file_name
        owner_id = document.uploaded_by

        self._notify(
            "signature received", self.notifier.notify_signature_received,
            owner_id, document_id, file_name, signer_name, signed_count, total,
        )
        if next_signature:
            self._notify(
                "your turn", self.notifier.notify_your_turn,
                response.next_signer_id, document_id, file_name,
            )
        if is_fully_signed:
            self._notify(
                "all signed", self.notifier.notify_all_signed,
                parties, document_id, file_name,
            )
        return response

    def get_signature_status(self, document_id: UUID, user_id: UUID) -> SignatureStatusResponse:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found")
        require_member(self.directory, document.group_id, user_id)

        signatures = self.signatures.find_by_document(document_id)
        signed_count = sum(1 for s in signatures if s.is_completed)
        signing_mode = signatures[0].signing_mode if signatures else None

        next_signature = None
        if signing_mode == SigningMode.SEQUENTIAL and document.signature_status in ACTIVE_STATUSES:
            next_signature = SignatureRepository.next_pending(signatures)

        return SignatureStatusResponse(
            document_id=document.id,
            file_name=document.file_name,
            status=document.signature_status,
            signing_mode=signing_mode,
            total_signers=len(signatures),
            signed_count=signed_count,
            progress_percentage=progress_percentage(signed_count, len(signatures)),
            due_date=signatures[0].due_date if signatures else None,
            next_signer_id=next_signature.signer_id if next_signature else None,
            next_signer_name=next_signature.signer.name if next_signature else None,
            signatures=[
                SignatureDetail(
                    id=s.id,
                    signer_id=s.signer_id,
                    signer_name=s.signer.name,
                    signer_email=s.signer.email,
                    signature_order=s.signature_order,
                    status=s.status,
                    signed_at=s.signed_at,
                    is_pending=s.status == SignerStatus.SENT_FOR_SIGNING,
                    is_current_signer=next_signature is not None and s.id == next_signature.id,
                )
                for s in signatures
            ],
        )

    def get_my_pending_signatures(self, user_id: UUID) -> List[PendingSignatureResponse]:
        """
        The signer's inbox: open workflows still waiting on this user,
        soonest due first and undated requests last.
        """
        now = self.clock.now()
        pending = []
        for s in self.signatures.find_pending_for_signer(user_id):
            document = s.document
            if not self.directory.is_member(document.group_id, user_id):
                continue
            is_my_turn = (
                s.signing_mode == SigningMode.PARALLEL
                or not self.signatures.find_incomplete_before(s.document_id, s.signature_order)
            )
            signing_url = None
            if self.signing_base_url:
                signing_url = SigningTokenService.signing_url(s.signing_token, self.signing_base_url)
            pending.append(PendingSignatureResponse(
                document_id=s.document_id,
                signature_id=s.id,
                group_id=document.group_id,
                file_name=document.file_name,
                document_type=document.document_type,
                document_status=document.signature_status,
                signing_mode=s.signing_mode,
                signature_order=s.signature_order,
                signing_token=s.signing_token,
                signing_url=signing_url,
                token_expires_at=s.token_expires_at,
                due_date=s.due_date,
                is_overdue=s.due_date is not None and s.due_date < now,
                is_my_turn=is_my_turn,
                message=s.message,
                requested_at=s.created_at,
            ))
        pending.sort(key=lambda p: (p.due_date is None, p.due_date or p.requested_at))
        return pending

    def cancel_signing(self, document_id: UUID, user_id: UUID,
                       reason: Optional[str] = None) -> CancelSigningResponse:
        """Stops an in-flight workflow. Completed signatures are kept as they are."""
        try:
            document = self.documents.get(document_id, for_update=True)
            if not document:
                raise NotFoundError("Document not found")
            require_document_action(self.directory, document, user_id, "cancel")

            if document.signature_status not in ACTIVE_STATUSES:
                raise InvalidOperationError(
                    f"Only documents out for signing can be cancelled (current status: {document.signature_status.value})"
                )

            now = self.clock.now()
            pending = [
                s for s in self.signatures.find_by_document(document_id, refresh=True)
                if s.status == SignerStatus.SENT_FOR_SIGNING
            ]
            for s in pending:
                s.status = SignerStatus.CANCELLED
                s.updated_at = now
            document.signature_status = SignatureStatus.CANCELLED
            document.updated_at = now
            self.session.commit()
        except DocumentError:
            self.session.rollback()
            raise

        logger.info("Signing of document %s cancelled by %s (%d pending signatures)",
                    document_id, user_id, len(pending))

        pending_signers = [s.signer_id for s in pending]
        file_name = document.file_name
        if pending_signers:
            self._notify(
                "signing cancelled", self.notifier.notify_signing_cancelled,
                pending_signers, document_id, file_name, reason,
            )

        return CancelSigningResponse(
            document_id=document_id,
            signature_status=SignatureStatus.CANCELLED,
            cancelled_signatures=len(pending),
            cancelled_at=now,
        )
