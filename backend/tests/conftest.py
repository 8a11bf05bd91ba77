import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from chowk.database import get_db, get_engine, get_session_factory, init_db
from chowk.dependencies import get_id_reader, get_notifier
from chowk.main import app
from chowk.services.admin_service import admin_service
from chowk.services.identity_service import IdentityDirectory
from chowk.services.job_service import JobLedger
from chowk.services.language_service import IdCardReader

CONTRACTOR = "919200000001"


class RecordingNotifier:
    """Stands in for the dispatcher: keeps every queued message in order."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def enqueue(self, phone: str, text: str) -> bool:
        self.sent.append((phone, text))
        return True

    def to(self, phone: str) -> list[str]:
        return [text for recipient, text in self.sent if recipient == phone]

    def status(self) -> dict:
        return {"queue_length": len(self.sent), "is_processing": False, "sent": 0, "failed": 0, "dropped": 0}


@pytest.fixture
def test_db(tmp_path):
    db_path = tmp_path / "chowk.sqlite"
    init_db(db_path)
    engine = get_engine(db_path)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSession
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def db(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def notifier(test_db):
    recorder = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: recorder
    return recorder


@pytest.fixture
def id_reader(test_db):
    reader = IdCardReader()
    app.dependency_overrides[get_id_reader] = lambda: reader
    return reader


@pytest.fixture
def fresh_admin_service():
    """Reset admin sessions for each test."""
    original = admin_service.__dict__.copy()
    admin_service._active_tokens = {}
    yield admin_service
    admin_service.__dict__.update(original)


@pytest.fixture
def client(test_db, notifier, id_reader, fresh_admin_service):
    return TestClient(app)


@pytest.fixture
def make_worker(test_db):
    counter = {"n": 0}

    def _make(phone, skill="painter", location="Noida, Sector 62", name=None, available_from=None, national_id=None):
        counter["n"] += 1
        with test_db() as session:
            worker = IdentityDirectory(session).register_worker(
                phone,
                name=name or f"Worker {phone[-4:]}",
                skill=skill,
                location=location,
                national_id=national_id,
            )
            # Registration order decides candidate order.
            worker.created_at = f"2024-01-01T00:00:{counter['n']:02d}Z"
            worker.available_from = available_from
            session.commit()
        return phone

    return _make


@pytest.fixture
def make_job(test_db):
    def _make(contractor=CONTRACTOR, skill="painter", workers_needed=1, location="Noida, Sector 18", **fields):
        with test_db() as session:
            IdentityDirectory(session).ensure_contractor(contractor)
            job = JobLedger(session).create(
                contractor_phone=contractor,
                skill_required=skill,
                wage=fields.pop("wage", "700"),
                workers_needed=workers_needed,
                location=location,
                **fields,
            )
            session.commit()
            return job.id

    return _make
