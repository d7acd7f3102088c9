"""
Signing tokens: self-contained bearer credentials that let one signer sign one
document until expiry, without a login session.

Wire format (before encoding)::

    SIGN|<document id hex>|<signer id hex>|<expiry epoch seconds>|<nonce>

encoded as URL-safe base64 without padding.
"""
import base64
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional
from uuid import UUID

from signing.clock import Clock, random_bytes

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "SIGN"
TOKEN_DELIMITER = "|"
NONCE_BYTES = 16


class TokenValidation(NamedTuple):
    is_valid: bool
    document_id: Optional[UUID]
    signer_id: Optional[UUID]


INVALID_TOKEN = TokenValidation(False, None, None)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


def _parse_uuid(value: str) -> UUID:
    if len(value) != 32:
        raise ValueError(f"Expected 32 hex characters, got {len(value)}")
    return UUID(hex=value)


class SigningTokenService:

    def __init__(self, clock: Optional[Clock] = None,
                 random_source: Optional[Callable[[int], bytes]] = None):
        self.clock = clock or Clock()
        self.random_source = random_source or random_bytes

    def expiry_for(self, expiration_days: int) -> datetime:
        return self.clock.now() + timedelta(days=expiration_days)

    def generate_token(self, document_id: UUID, signer_id: UUID, expiration_days: int) -> str:
        expires_at = self.expiry_for(expiration_days)
        expiration_epoch = int(expires_at.replace(tzinfo=timezone.utc).timestamp())
        nonce = _b64url_encode(self.random_source(NONCE_BYTES))

        payload = TOKEN_DELIMITER.join([
            TOKEN_PREFIX,
            document_id.hex,
            signer_id.hex,
            str(expiration_epoch),
            nonce,
        ])
        logger.info("Generated signing token for document %s, signer %s", document_id, signer_id)
        return _b64url_encode(payload.encode("utf-8"))

    def validate_token(self, token: Optional[str]) -> TokenValidation:
        """
        Decodes and checks a signing token.

        Never raises: malformed input of any kind is reported as an invalid
        token. An expired token is invalid but still carries its decoded ids.
        """
        if not token or not token.strip():
            return INVALID_TOKEN

        try:
            payload = _b64url_decode(token).decode("utf-8")
            parts = payload.split(TOKEN_DELIMITER)
            if len(parts) != 5 or parts[0] != TOKEN_PREFIX:
                logger.warning("Invalid signing token format")
                return INVALID_TOKEN

            document_id = _parse_uuid(parts[1])
            signer_id = _parse_uuid(parts[2])
            if not parts[3].isdigit():
                logger.warning("Invalid expiration timestamp in signing token")
                return INVALID_TOKEN
            expires_at = datetime.fromtimestamp(int(parts[3]), timezone.utc).replace(tzinfo=None)
        except Exception:
            logger.warning("Malformed signing token rejected")
            return INVALID_TOKEN

        if self.clock.now() > expires_at:
            logger.warning("Signing token expired for document %s, signer %s", document_id, signer_id)
            return TokenValidation(False, document_id, signer_id)

        return TokenValidation(True, document_id, signer_id)

    @staticmethod
    def signing_url(token: str, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/sign/{token}"
