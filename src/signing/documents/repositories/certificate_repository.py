from typing import Optional

from sqlalchemy.orm import Session

from signing.documents.models.certificate import SigningCertificate
from signing.documents.models.document import Document


class CertificateRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, certificate: SigningCertificate) -> SigningCertificate:
        self.db.add(certificate)
        self.db.flush()
        return certificate

    def get_by_certificate_id(self, certificate_id: str, include_deleted: bool = False) -> Optional[SigningCertificate]:
        return (
            self.db
            .query(SigningCertificate)
            .join(Document, SigningCertificate.document_id == Document.id)
            .filter(SigningCertificate.certificate_id == certificate_id, Document.visible(include_deleted))
            .one_or_none()
        )
