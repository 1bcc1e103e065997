"""Shared fixtures: a throwaway SQLite database, fake AI/extraction collaborators, an HTTP client."""

import hashlib
import hmac
import json
import time
import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.core.errors import AnalysisError, ExtractionError
from resumeopt.main import create_app
from resumeopt.models.orm import Resume, User
from resumeopt.models.schemas import (
    DetailedAtsAnalysis,
    FeedbackItem,
    KeywordAnalysis,
    OptimizationAnalysis,
)
from resumeopt.services.analysis_service import AnalysisOrchestrator
from resumeopt.services.storage_service import FileStorage
from resumeopt.services.stripe_gateway import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"

RESUME_TEXT = """Jane Smith
jane.smith@example.com | (555) 123-4567

SUMMARY
Backend engineer with 6 years of experience.

EXPERIENCE
Senior Engineer, Acme Corp (2020-2024)
- Developed payment microservices in Python
- Led a team of four engineers
- Designed PostgreSQL schemas and implemented caching

EDUCATION
BS Computer Science

SKILLS
Python, FastAPI, PostgreSQL, Redis, Docker"""

JOB_DESCRIPTION = "Senior backend engineer. Python, PostgreSQL, Kubernetes, 5+ years."


class FakeExtractor:
    def __init__(self) -> None:
        self.text = RESUME_TEXT
        self.fail = False
        self.calls = 0

    def extract(self, data: bytes, mime_type: str) -> str:
        self.calls += 1
        if self.fail:
            raise ExtractionError("Failed to extract text from the document")
        return self.text


class FakeAnalyzer:
    def __init__(self) -> None:
        self.fail = False
        self.calls: list[tuple] = []
        self.ats_score = 82
        self.optimization_score = 64

    async def detailed_ats(self, resume_text: str) -> DetailedAtsAnalysis:
        self.calls.append(("detailed_ats", resume_text))
        if self.fail:
            raise AnalysisError("AI analysis failed")
        return DetailedAtsAnalysis(
            ats_score=self.ats_score,
            feedback=[
                FeedbackItem(type="positive", message="Standard section headers."),
                FeedbackItem(type="negative", message="Dates use mixed formats."),
            ],
        )

    async def job_optimization(self, resume_text: str, job_description: str) -> OptimizationAnalysis:
        self.calls.append(("job_opt", resume_text, job_description))
        if self.fail:
            raise AnalysisError("AI analysis failed")
        return OptimizationAnalysis(
            optimization_score=self.optimization_score,
            keyword_analysis=KeywordAnalysis(matched=["Python", "PostgreSQL"], missing=["Kubernetes"]),
            suggestions=["Mention any Kubernetes experience."],
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        upload_dir=str(tmp_path / "uploads"),
        jwt_secret="test-secret",
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        analysis_cache_ttl=0,
        ppu_click_limit=5,
        log_level="DEBUG",
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def storage(settings) -> FileStorage:
    return FileStorage(settings.upload_dir)


@pytest.fixture
def orchestrator(database, extractor, analyzer, storage, settings) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(database, extractor, analyzer, storage, settings)


@pytest.fixture
def app(settings, database, extractor, analyzer, storage):
    return create_app(
        settings,
        database=database,
        extractor=extractor,
        analyzer=analyzer,
        storage=storage,
        payment_gateway=StripeGateway(settings),
    )


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user(database):
    async def _make(**fields) -> User:
        user = User(id=uuid.uuid4(), email=f"{uuid.uuid4().hex[:10]}@example.com", **fields)
        async with database.session() as db:
            db.add(user)
            await db.commit()
        return user

    return _make


@pytest.fixture
def make_resume(database, storage):
    async def _make(user_id, **fields) -> Resume:
        resume = Resume(
            id=uuid.uuid4(),
            user_id=user_id,
            file_ref=storage.save(b"%PDF-1.4 fake resume", "resume.pdf"),
            original_file_name="resume.pdf",
            mime_type="application/pdf",
            **fields,
        )
        async with database.session() as db:
            db.add(resume)
            await db.commit()
        return resume

    return _make


@pytest.fixture
def load(database):
    """Fresh read of a row, bypassing any session state the code under test holds."""

    async def _load(model, id_):
        async with database.session() as db:
            return await db.get(model, id_)

    return _load


@pytest.fixture
def auth(settings):
    def _headers(user_or_id, role: str = "user") -> dict[str, str]:
        user_id = getattr(user_or_id, "id", user_or_id)
        token = jwt.encode(
            {"sub": str(user_id), "role": role},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way the provider does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed(
    service_type: str,
    user_id,
    resume_id=None,
    session_id: str | None = None,
    event_id: str | None = None,
    amount_total: int = 500,
    subscription: str | None = None,
) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id or f"cs_test_{uuid.uuid4().hex[:16]}",
                "object": "checkout.session",
                "amount_total": amount_total,
                "payment_status": "paid",
                "payment_intent": f"pi_{uuid.uuid4().hex[:16]}",
                "subscription": subscription,
                "metadata": {
                    "serviceType": service_type,
                    "userId": str(user_id),
                    "resumeId": str(resume_id) if resume_id else "",
                },
            }
        },
    }


@pytest.fixture
def post_webhook(client):
    async def _post(event: dict, secret: str = WEBHOOK_SECRET, signature: str | None = None):
        payload = json.dumps(event)
        headers = {
            "Content-Type": "application/json",
            "Stripe-Signature": signature if signature is not None else sign_payload(payload, secret),
        }
        return await client.post("/api/v1/payments/webhook", content=payload, headers=headers)

    return _post


@pytest.fixture
def event_builder():
    return checkout_completed
