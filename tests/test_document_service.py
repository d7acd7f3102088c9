import hashlib
from uuid import uuid4

import pytest

from conftest import FakeScanner, make_pdf_bytes, send, sign, upload_pdf
from signing.documents.exceptions import (
    ConflictError, InvalidArgumentError, InvalidOperationError, NotFoundError, UnauthorizedError,
)
from signing.documents.models import Document, DocumentType, SignatureStatus
from signing.documents.services.document_service import DocumentService
from signing.documents.services.file_validation import validate_file
from signing.documents.services.storage import LocalFileStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def test_upload_valid_pdf(session, document_service, storage, scanner, group_id, users):
    content = make_pdf_bytes("Ownership agreement")

    document = document_service.upload_document(
        group_id, users["bob"].id, content, "agreement.pdf", "application/pdf",
        document_type=DocumentType.OWNERSHIP_AGREEMENT, description="Co-ownership terms",
    )

    assert document.signature_status == SignatureStatus.DRAFT
    assert document.document_type == DocumentType.OWNERSHIP_AGREEMENT
    assert document.page_count == 1
    assert document.file_size == len(content)
    assert document.uploaded_by == users["bob"].id

    stored = session.get(Document, document.id)
    assert stored.is_virus_scanned is True
    assert stored.file_hash == hashlib.sha256(content).hexdigest()
    assert stored.storage_key.startswith(f"documents/{group_id}/")
    assert stored.storage_key.endswith(".pdf")
    with storage.get(stored.storage_key) as f:
        assert f.read() == content
    assert scanner.scanned == [("agreement.pdf", content)]


def test_upload_png(document_service, group_id, users):
    document = document_service.upload_document(group_id, users["alice"].id, PNG_BYTES, "photo.png", "image/png")
    assert document.page_count is None


def test_upload_requires_membership(document_service, group_id, users):
    with pytest.raises(UnauthorizedError):
        upload_pdf(document_service, group_id, users["dave"])


@pytest.mark.parametrize("content, file_name, content_type", [
    (b"", "empty.pdf", "application/pdf"),
    (b"plain text", "notes.txt", "text/plain"),
    (make_pdf_bytes(), "report.pdf", "image/png"),
    (make_pdf_bytes(), "photo.png", "image/png"),
    (b"PK\x03\x04 not really a pdf", "report.pdf", "application/pdf"),
    (b"%PDF-1.4 truncated garbage", "report.pdf", "application/pdf"),
    (b"Fake DOCX content", "contract.docx", DOCX_TYPE),
])
def test_upload_rejects_invalid_files(session, document_service, group_id, users, content, file_name, content_type):
    with pytest.raises(InvalidArgumentError):
        document_service.upload_document(group_id, users["alice"].id, content, file_name, content_type)
    assert session.query(Document).count() == 0


def test_upload_rejects_oversized_file(session, directory, storage, scanner, clock, group_id, users):
    service = DocumentService(session, directory, storage, scanner, clock=clock, max_file_size=100)
    with pytest.raises(InvalidArgumentError, match="maximum size"):
        upload_pdf(service, group_id, users["alice"])


def test_duplicate_content_in_group_is_conflict(document_service, group_id, users):
    content = make_pdf_bytes("Same bytes")
    document_service.upload_document(group_id, users["alice"].id, content, "a.pdf", "application/pdf")

    with pytest.raises(ConflictError):
        document_service.upload_document(group_id, users["bob"].id, content, "b.pdf", "application/pdf")


def test_infected_upload_stores_nothing(session, directory, clock, group_id, users, tmp_path):
    storage = LocalFileStorage(str(tmp_path / "blobs"))
    service = DocumentService(session, directory, storage, FakeScanner(threat="Trojan.Generic"), clock=clock)

    with pytest.raises(InvalidArgumentError, match="Trojan.Generic"):
        upload_pdf(service, group_id, users["alice"])

    assert session.query(Document).count() == 0
    assert not (tmp_path / "blobs").exists()


def test_get_and_list_documents(document_service, group_id, users):
    first = upload_pdf(document_service, group_id, users["alice"], "first.pdf")
    second = upload_pdf(document_service, group_id, users["bob"], "second.pdf")

    assert document_service.get_document(first.id, users["carol"].id).file_name == "first.pdf"
    listed = document_service.list_group_documents(group_id, users["carol"].id)
    assert {d.id for d in listed} == {first.id, second.id}


def test_get_requires_membership(document_service, group_id, users):
    document = upload_pdf(document_service, group_id, users["alice"])
    with pytest.raises(UnauthorizedError):
        document_service.get_document(document.id, users["dave"].id)
    with pytest.raises(UnauthorizedError):
        document_service.list_group_documents(group_id, users["dave"].id)


def test_get_unknown_document(document_service, users):
    with pytest.raises(NotFoundError):
        document_service.get_document(uuid4(), users["alice"].id)


def test_download_document(document_service, group_id, users):
    content = make_pdf_bytes("Download me")
    document = document_service.upload_document(group_id, users["alice"].id, content, "d.pdf", "application/pdf")

    download = document_service.download_document(document.id, users["bob"].id)

    assert download.file_name == "d.pdf"
    assert download.file_size == len(content)
    with download.stream as f:
        assert f.read() == content


def test_soft_delete_hides_document(session, document_service, storage, group_id, users):
    document = upload_pdf(document_service, group_id, users["alice"])

    document_service.delete_document(document.id, users["alice"].id)

    with pytest.raises(NotFoundError):
        document_service.get_document(document.id, users["alice"].id)
    assert document_service.list_group_documents(group_id, users["alice"].id) == []
    assert len(document_service.list_group_documents(group_id, users["alice"].id, include_deleted=True)) == 1

    stored = session.get(Document, document.id)
    assert stored.is_deleted is True
    assert stored.deleted_by == users["alice"].id
    assert stored.deleted_at is not None
    with storage.get(stored.storage_key) as f:
        assert f.read()


def test_delete_requires_admin(document_service, group_id, users):
    document = upload_pdf(document_service, group_id, users["bob"])
    with pytest.raises(UnauthorizedError):
        document_service.delete_document(document.id, users["bob"].id)


def test_fully_signed_document_cannot_be_deleted(document_service, signing_service, group_id, users):
    document = upload_pdf(document_service, group_id, users["alice"])
    bob = users["bob"]
    tokens = send(signing_service, document, [bob], users["alice"])
    sign(signing_service, document, bob, tokens[bob.id])

    with pytest.raises(InvalidOperationError):
        document_service.delete_document(document.id, users["alice"].id)


def test_deleted_document_hides_its_signatures(document_service, signing_service, group_id, users):
    document = upload_pdf(document_service, group_id, users["alice"])
    bob = users["bob"]
    send(signing_service, document, [bob], users["alice"])

    document_service.delete_document(document.id, users["alice"].id)

    assert signing_service.signatures.find_by_document(document.id) == []
    assert len(signing_service.signatures.find_by_document(document.id, include_deleted=True)) == 1


def test_validate_file_returns_page_count():
    assert validate_file(make_pdf_bytes(), "x.pdf", "application/pdf", 10 * 1024 * 1024) == 1


def test_storage_rejects_keys_outside_root(storage):
    with pytest.raises(ValueError):
        storage.put(b"data", "../escape.bin")


def test_storage_missing_key(storage):
    with pytest.raises(FileNotFoundError):
        storage.get("documents/missing.pdf")


def test_storage_delete(storage):
    storage.put(b"data", "tmp/file.bin")
    storage.delete("tmp/file.bin")
    with pytest.raises(FileNotFoundError):
        storage.get("tmp/file.bin")
