"""
Checks applied to every uploaded file, for new documents and new versions alike.
"""
import hashlib
import io
import logging
import os
from typing import Optional

from PyPDF2 import PdfReader

from signing.documents.exceptions import InvalidArgumentError
from signing.documents.services.collaborators import VirusScanner

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    ".pdf": ["application/pdf"],
    ".docx": ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"],
    ".doc": ["application/msword"],
    ".jpg": ["image/jpeg"],
    ".jpeg": ["image/jpeg"],
    ".png": ["image/png"],
}

MAGIC_BYTES = {
    ".pdf": b"%PDF",
    ".docx": b"PK\x03\x04",
    ".doc": b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1",
    ".jpg": b"\xff\xd8\xff",
    ".jpeg": b"\xff\xd8\xff",
    ".png": b"\x89PNG\r\n\x1a\n",
}


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def file_hash(file_contents: bytes) -> str:
    return hashlib.sha256(file_contents).hexdigest()


def validate_file(file_contents: bytes, file_name: str, content_type: str, max_file_size: int) -> Optional[int]:
    """
    Validates an uploaded file and returns its page count (PDF only).

    Raises InvalidArgumentError on the first failed check.
    """
    if not file_contents:
        raise InvalidArgumentError("File is empty")

    if len(file_contents) > max_file_size:
        raise InvalidArgumentError(f"File exceeds the maximum size of {max_file_size // (1024 * 1024)} MB")

    ext = file_extension(file_name or "")
    if ext not in ALLOWED_CONTENT_TYPES:
        allowed = ", ".join(sorted(ALLOWED_CONTENT_TYPES))
        raise InvalidArgumentError(f"File extension '{ext}' is not allowed. Allowed: {allowed}")

    if content_type not in ALLOWED_CONTENT_TYPES[ext]:
        raise InvalidArgumentError(f"Content type '{content_type}' does not match extension '{ext}'")

    if not file_contents.startswith(MAGIC_BYTES[ext]):
        raise InvalidArgumentError(f"File content does not match its '{ext}' extension")

    if ext != ".pdf":
        return None

    try:
        reader = PdfReader(io.BytesIO(file_contents))
        return len(reader.pages)
    except Exception:
        raise InvalidArgumentError("Invalid or corrupted PDF")


def ensure_clean(scanner: VirusScanner, file_contents: bytes, file_name: str) -> None:
    result = scanner.scan(io.BytesIO(file_contents), file_name)
    if not result.is_clean:
        logger.warning("Upload of %s rejected by virus scan: %s", file_name, result.threat_name)
        raise InvalidArgumentError(f"File failed virus scan: {result.threat_name or 'threat detected'}")
