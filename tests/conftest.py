import base64
import io
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from signing.clock import Clock
from signing.documents.models import User
from signing.documents.models.signature import SigningMode
from signing.documents.services.certificate_service import CertificateService
from signing.documents.services.collaborators import GroupDirectory, ScanResult, VirusScanner
from signing.documents.services.document_service import DocumentService
from signing.documents.services.permission import GroupRole
from signing.documents.services.reminder_service import ReminderService
from signing.documents.services.signing_service import SigningService
from signing.documents.services.storage import LocalFileStorage
from signing.documents.services.token_service import SigningTokenService
from signing.documents.services.version_service import VersionService
from signing.notifications.repositories.notification_repository import NotificationRepository
from signing.notifications.services.notification_service import NotificationService

engine = create_engine("sqlite:///:memory:")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

START = datetime(2025, 1, 15, 10, 0, 0)
SIGNATURE_IMAGE = b"\x89PNG\r\n\x1a\nfake-stroke-data"
SIGNATURE_DATA = base64.b64encode(SIGNATURE_IMAGE).decode("ascii")


class FixedClock(Clock):
    def __init__(self, now: datetime = START):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


class SequenceRandom:
    """Deterministic stand-in for the random byte source."""

    def __init__(self):
        self.calls = 0

    def __call__(self, length: int) -> bytes:
        self.calls += 1
        return bytes((self.calls * 31 + i) % 256 for i in range(length))


class FakeDirectory(GroupDirectory):
    def __init__(self):
        self.roles = {}

    def add(self, group_id, user_id, role=GroupRole.MEMBER):
        self.roles[(group_id, user_id)] = role

    def is_member(self, group_id, user_id):
        return (group_id, user_id) in self.roles

    def role_of(self, group_id, user_id):
        return self.roles.get((group_id, user_id))


class FakeScanner(VirusScanner):
    def __init__(self, threat=None):
        self.threat = threat
        self.scanned = []

    def scan(self, stream, file_name):
        self.scanned.append((file_name, stream.read()))
        if self.threat:
            return ScanResult(is_clean=False, threat_name=self.threat)
        return ScanResult(is_clean=True)


class BrokenNotificationRepository:
    def save(self, notification):
        raise RuntimeError("notification backend unavailable")

    def save_all(self, notifications):
        raise RuntimeError("notification backend unavailable")


class FailingForUserRepository(NotificationRepository):
    """Delivers every notification except those addressed to one user."""

    def __init__(self, db_session, failing_user_id):
        super().__init__(db_session)
        self.failing_user_id = failing_user_id

    def save(self, notification):
        if notification.user_id == self.failing_user_id:
            raise RuntimeError("mailbox unavailable")
        return super().save(notification)


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def scanner():
    return FakeScanner()


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(str(tmp_path / "storage"))


@pytest.fixture
def notifier(session):
    return NotificationService(NotificationRepository(session))


@pytest.fixture
def token_service(clock):
    return SigningTokenService(clock=clock, random_source=SequenceRandom())


@pytest.fixture
def group_id():
    return uuid4()


def create_user(session, name):
    user = User(name=name, email=f"{name.lower()}@mail.com", is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def users(session, directory, group_id):
    """Alice is the group admin, Bob and Carol are members, Dave is an outsider."""
    alice = create_user(session, "Alice")
    bob = create_user(session, "Bob")
    carol = create_user(session, "Carol")
    dave = create_user(session, "Dave")
    directory.add(group_id, alice.id, GroupRole.ADMIN)
    directory.add(group_id, bob.id)
    directory.add(group_id, carol.id)
    return {"alice": alice, "bob": bob, "carol": carol, "dave": dave}


@pytest.fixture
def document_service(session, directory, storage, scanner, clock):
    return DocumentService(session, directory, storage, scanner, clock=clock)


@pytest.fixture
def signing_service(session, directory, notifier, storage, token_service, clock):
    return SigningService(session, directory, notifier, storage, token_service=token_service, clock=clock)


@pytest.fixture
def reminder_service(session, directory, notifier, clock):
    return ReminderService(session, directory, notifier, clock=clock)


@pytest.fixture
def certificate_service(session, directory, storage, clock):
    return CertificateService(session, directory, storage, clock=clock, random_source=SequenceRandom())


@pytest.fixture
def version_service(session, directory, storage, scanner, clock):
    return VersionService(session, directory, storage, scanner, clock=clock)


def make_pdf_bytes(text="Test document"):
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    c.drawString(50, 750, text)
    c.save()
    buf.seek(0)
    return buf.read()


def upload_pdf(document_service, group_id, user, file_name="agreement.pdf"):
    return document_service.upload_document(
        group_id, user.id, make_pdf_bytes(f"Contents of {file_name}"), file_name, "application/pdf"
    )


def send(signing_service, document, signers, requester, mode=SigningMode.PARALLEL, **kwargs):
    response = signing_service.send_for_signing(
        document.id, [s.id for s in signers], requester.id, signing_mode=mode, **kwargs
    )
    return {info.signer_id: info.signing_token for info in response.signers}


def sign(signing_service, document, signer, token, **kwargs):
    kwargs.setdefault("ip_address", "10.0.0.1")
    kwargs.setdefault("device_info", "pytest")
    return signing_service.sign_document(document.id, token, SIGNATURE_DATA, signer.id, **kwargs)
