import os

# Set testing environment before the application reads its settings
os.environ["TESTING"] = "1"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./test_medvision.db")
os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from medvision.main import app
from medvision.api.deps import get_email_sender, get_video_provider
from medvision.core.database import Base, SessionLocal, engine, redis_client
from medvision.core.exceptions import DependencyFailure
from medvision.core.security import Principal, UserRole, create_token_pair, get_password_hash
from medvision.models import Admin, Doctor, Patient
from medvision.services.email import EmailSender
from medvision.services.video import VideoProvider, VideoRoom

ADMIN_PASSWORD = "Admin@Pass2024!"
DOCTOR_PASSWORD = "Doctor123"


class StubVideoProvider(VideoProvider):
    """Records room operations; failures are switched on per test."""

    def __init__(self):
        self.created: List[str] = []
        self.deleted: List[str] = []
        self.fail_create = False
        self.fail_delete = False

    def create_room(self, name):
        if self.fail_create:
            raise DependencyFailure("Falha ao contatar o serviço de vídeo")
        self.created.append(name)
        return VideoRoom(url=f"https://video.test/{name}", room_name=name)

    def delete_room(self, name):
        if self.fail_delete:
            raise DependencyFailure("Falha ao contatar o serviço de vídeo")
        self.deleted.append(name)

    def generate_access_token(self, room_name, user_id, role, user_name=None, expires_in=3600):
        return f"room-token:{room_name}:{user_id}:{role}"


class RecordingEmailSender(EmailSender):
    def __init__(self):
        self.outbox: List[Dict[str, str]] = []

    def send(self, to, subject, html):
        self.outbox.append({"to": to, "subject": subject, "html": html})
        return True


@dataclass
class Account:
    id: str
    role: UserRole
    token: str
    email: Optional[str] = None
    cpf: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def principal(self) -> Principal:
        return Principal(id=self.id, role=self.role)


def _persist(entity):
    db = SessionLocal()
    try:
        db.add(entity)
        db.commit()
        db.refresh(entity)
        return entity
    finally:
        db.close()


def fetch(model, entity_id):
    """Load a row in a short-lived session so no SQLite lock outlives the call."""
    db = SessionLocal()
    try:
        return db.get(model, entity_id)
    finally:
        db.close()


def update_row(model, entity_id, **changes):
    db = SessionLocal()
    try:
        entity = db.get(model, entity_id)
        for name, value in changes.items():
            setattr(entity, name, value)
        db.commit()
    finally:
        db.close()


def count_rows(model, *criteria) -> int:
    db = SessionLocal()
    try:
        return db.query(model).filter(*criteria).count()
    finally:
        db.close()


def _account(entity, role: UserRole, claims: dict) -> Account:
    token = create_token_pair(entity.id, role, claims).access_token
    return Account(
        id=entity.id,
        role=role,
        token=token,
        email=getattr(entity, "email", None),
        cpf=getattr(entity, "cpf", None),
    )


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    redis_client.flushall()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def video_provider():
    return StubVideoProvider()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def client(test_db, video_provider, email_sender):
    app.dependency_overrides[get_video_provider] = lambda: video_provider
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_admin(test_db):
    counter = {"n": 0}

    def factory(email: Optional[str] = None, password: str = ADMIN_PASSWORD) -> Account:
        counter["n"] += 1
        admin = _persist(Admin(
            name=f"Admin {counter['n']}",
            email=email or f"admin{counter['n']}@medvision.com.br",
            password_hash=get_password_hash(password),
        ))
        return _account(admin, UserRole.ADMIN, {"email": admin.email, "sessionId": "test-session"})

    return factory


@pytest.fixture
def make_doctor(test_db):
    counter = {"n": 0}

    def factory(
        crm: Optional[str] = None,
        monthly_slots: int = 10,
        email: Optional[str] = None,
        password: str = DOCTOR_PASSWORD,
    ) -> Account:
        counter["n"] += 1
        doctor = _persist(Doctor(
            name=f"Dra. Medica {counter['n']}",
            email=email or f"doctor{counter['n']}@medvision.com.br",
            phone="11987654321",
            crm=crm or f"{20000 + counter['n']}/SP",
            specialty="Cardiologia",
            monthly_slots=monthly_slots,
            password_hash=get_password_hash(password),
        ))
        return _account(doctor, UserRole.DOCTOR, {"email": doctor.email, "crm": doctor.crm})

    return factory


@pytest.fixture
def make_patient(test_db):
    counter = {"n": 0}

    def factory(cpf: Optional[str] = None) -> Account:
        counter["n"] += 1
        patient = _persist(Patient(
            name=f"Paciente {counter['n']}",
            age=30 + counter["n"],
            cpf=cpf or f"{counter['n']:011d}",
            phone="11987654321",
            address={
                "street": "Rua das Flores",
                "number": "100",
                "neighborhood": "Centro",
                "city": "São Paulo",
                "zipcode": "01001-000",
            },
        ))
        return _account(patient, UserRole.PATIENT, {"cpf": patient.cpf})

    return factory


@pytest.fixture
def admin(make_admin):
    return make_admin()


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def patient(make_patient):
    return make_patient()
