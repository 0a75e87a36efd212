"""
Shared fixtures: in-memory database, API client, auth tokens and
recording fakes for the AI and email collaborators.

Environment is set before anything under ``resolve`` is imported, since
settings are read once at import time.
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta

_STORAGE_DIR = tempfile.mkdtemp(prefix="resolve-tests-")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["ADMIN_SESSION_SECRET"] = "test-admin-secret-with-enough-length-for-hs256"
os.environ["AI_PROVIDER"] = "disabled"
os.environ["EMAIL_PROVIDER"] = "dev"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = _STORAGE_DIR
os.environ["PAYMENT_PROVIDER"] = "dev"
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["GOOGLE_CALENDAR_ACCESS_TOKEN"] = ""
os.environ["WORKFLOW_WORKER_ENABLED"] = "false"
os.environ["FREE_TIER_LIMIT"] = "2"

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from resolve.core.config import settings  # noqa: E402
from resolve.db.database import Base, SessionLocal, engine, get_db  # noqa: E402
from resolve.db.models import User, UserRole  # noqa: E402
from resolve.main import app  # noqa: E402
from resolve.services import case_service, workflow_service  # noqa: E402
from resolve.services.ai_service import AIResult, ai_service  # noqa: E402
from resolve.services.email_service import email_service  # noqa: E402

SAMPLE_PACK = {
    "executiveSummary": "Recover the unpaid progress claim under the Security of Payment Act.",
    "strategyOverview": "Issue a payment claim, then escalate to adjudication if unpaid.",
    "stepByStepPlan": [
        {"step": 1, "action": "Serve payment claim", "description": "Serve under SOPA",
         "timeframe": "This week", "priority": "high"},
    ],
    "riskMitigation": ["Keep records of all variations"],
    "expectedOutcomes": "Payment within 30 days or an adjudication determination.",
}

SAMPLE_ANALYSIS = {
    "caseType": "Unpaid progress claim",
    "jurisdiction": "NSW",
    "strengthOfCase": "strong",
    "riskLevel": "low",
}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_token(user_id, email, **claims):
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.AUTH_JWT_AUDIENCE,
        "exp": datetime.utcnow() + timedelta(hours=1),
        "user_metadata": {"full_name": "Jane Smith"},
    }
    payload.update(claims)
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def make_admin_token(user_id, email="admin@resolve.example", role="admin"):
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": datetime.utcnow() + timedelta(hours=1),
    }
    return jwt.encode(payload, settings.admin_session_secret, algorithm=settings.AUTH_JWT_ALGORITHM)


@pytest.fixture
def user(db):
    user = User(id=uuid.uuid4(), email="jane@example.com", full_name="Jane Smith", role=UserRole.user.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_user(db):
    user = User(id=uuid.uuid4(), email="bob@example.com", full_name="Bob Builder", role=UserRole.user.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db):
    user = User(id=uuid.uuid4(), email="admin@resolve.example", full_name="Admin", role=UserRole.admin.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user_headers(user):
    return {"Authorization": f"Bearer {make_token(user.id, user.email)}"}


@pytest.fixture
def other_headers(other_user):
    return {"Authorization": f"Bearer {make_token(other_user.id, other_user.email)}"}


@pytest.fixture
def admin_headers(admin):
    return {"X-Admin-Session": make_admin_token(admin.id, admin.email)}


@pytest.fixture
def sent_emails(monkeypatch):
    """Record every email instead of delivering it."""
    sent = []

    def _send(to, template_id, variables):
        sent.append({"to": to, "template_id": template_id, "vars": variables})
        return True

    monkeypatch.setattr(email_service, "send", _send)
    return sent


class FakeAI:
    def __init__(self):
        self.calls = []

    def generate(self, facts, document_type="strategy_pack"):
        self.calls.append((facts, document_type))
        if document_type == "strategy_pack":
            return AIResult(
                analysis=dict(SAMPLE_ANALYSIS),
                content_text=SAMPLE_PACK["executiveSummary"],
                strategy_pack=dict(SAMPLE_PACK),
            )
        return AIResult(analysis=dict(SAMPLE_ANALYSIS), content_text=f"Draft {document_type}")

    def review_application(self, facts):
        self.calls.append((facts, "review"))
        return dict(SAMPLE_ANALYSIS)


@pytest.fixture
def fake_ai(monkeypatch):
    fake = FakeAI()
    monkeypatch.setattr(ai_service, "generate", fake.generate)
    monkeypatch.setattr(ai_service, "review_application", fake.review_application)
    return fake


APPLICATION_DATA = {
    "full_name": "Jane Smith",
    "phone": "0400 000 000",
    "email": "jane@example.com",
    "trade": "Plumber",
    "state": "NSW",
    "issue_type": "unpaid_invoice",
    "amount": 15000,
    "description": "Builder has not paid my final progress claim for a bathroom renovation.",
}


@pytest.fixture
def application(db):
    return workflow_service.create_application(db, dict(APPLICATION_DATA))


@pytest.fixture
def case(db, user):
    return case_service.create_case(db, user, {"title": "Unpaid bathroom renovation"})
