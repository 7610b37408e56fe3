"""Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata. Outgoing email is captured instead of sent.
"""
import itertools
import os

os.environ.setdefault("DATABASE_DSN", "sqlite://")
os.environ.setdefault("SESSION_SECRET", "test-secret-key-for-testing-only")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.auth import create_session
from app.core.config import SESSION_COOKIE_NAME
from app.core.database import Base, get_db
from app.models.profile import Profile, ProfileRole
from app.services.guardian import register_student
from app.services.invitation import invitation_service


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session in one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Database session for calling services directly."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def make_profile(db):
    """Factory creating committed profiles with sequential ids."""
    ids = itertools.count(1)

    def _make(email: str, role: str = ProfileRole.GUARDIAN.value, name: str = None) -> Profile:
        profile = Profile(id=next(ids), email=email, role=role, name=name)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture
def guardian(make_profile):
    """Guardian who registers the student (u1)."""
    return make_profile("guardian1@example.com", name="Grace Hopper")


@pytest.fixture
def second_guardian(make_profile):
    """Guardian who is invited (u2)."""
    return make_profile("guardian2@example.com", name="Alan Turing")


@pytest.fixture
def student(db, guardian):
    """Student S1 with `guardian` as its only, primary guardian."""
    result = register_student(db, guardian.id, "Ada Lovelace")
    assert result.success
    return result.student


# =============================================================================
# Email Capture
# =============================================================================


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Record notification emails instead of talking to SMTP."""
    outbox = []

    def _recorder(kind):
        def _send(**kwargs):
            outbox.append({"kind": kind, **kwargs})
            return True
        return _send

    monkeypatch.setattr(invitation_service, "send_invitation_email", _recorder("invitation"))
    monkeypatch.setattr(invitation_service, "send_invitation_reminder_email", _recorder("reminder"))
    monkeypatch.setattr(invitation_service, "send_invitation_accepted_email", _recorder("accepted"))
    return outbox


def last_token(outbox) -> str:
    """Token carried by the most recent invitation email."""
    return [e for e in outbox if e["kind"] == "invitation"][-1]["token"]


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the test database."""
    from app.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login(client: TestClient, profile: Profile) -> TestClient:
    """Attach a signed session cookie for the profile to the client."""
    client.cookies.set(
        SESSION_COOKIE_NAME,
        create_session(profile.id, profile.email, profile.role, profile.name)
    )
    return client
