"""
Shared test fixtures and configuration for pytest.
"""

import os
from typing import AsyncGenerator, Optional

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["EXPOSE_OTP_CODES"] = "true"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from procurement_hub.core.analysis_gateway import get_analysis_gateway
from procurement_hub.core.auth import create_token_pair
from procurement_hub.core.exceptions import AnalysisError, AnalysisFailure
from procurement_hub.db.database import Base, enable_sqlite_savepoints, get_db_session
from procurement_hub.db.models import CollectionModel  # noqa: F401
from procurement_hub.main import app
from procurement_hub.models.schemas import AnalysisResult, AppSettings, User, UserRole
from procurement_hub.services.auth_service import AuthService


# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_analysis(
    vendor: Optional[str] = "Acme Corp",
    score: float = 80,
    registered_name: Optional[str] = None,
) -> AnalysisResult:
    """Build a minimal valid analysis payload."""
    payload = {
        "summary": f"Proposal from {vendor}",
        "gaps": ["No delivery date"],
        "draft_email": {"subject": "Clarification", "body": "Please clarify."},
        "draft_rfq": {"subject": "RFQ", "body": "Please quote."},
        "score": score,
        "vendor_check_inputs": {"registered_name": registered_name},
    }
    if vendor is not None:
        payload["vendor_identification"] = {
            "vendor_name": vendor,
            "confidence_level": "High",
            "evidence": [],
        }
    return AnalysisResult.model_validate(payload)


class FakeGateway:
    """Stands in for the analysis gateway; records calls."""

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None):
        self.result = result or make_analysis()
        self.error = error
        self.calls = []

    async def analyze(
        self,
        content: bytes,
        mime_type: str,
        file_name: str,
        app_settings: AppSettings,
    ) -> AnalysisResult:
        self.calls.append((file_name, mime_type, len(content)))
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def test_client(db_session, fake_gateway) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and gateway overrides."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_session
    app.dependency_overrides[get_analysis_gateway] = lambda: fake_gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ User Fixtures ============

@pytest.fixture
def test_user_data():
    """Test user data."""
    return {
        "email": "test@example.com",
        "username": "tester",
        "password": "testpassword123",
        "first_name": "Test",
        "last_name": "User",
    }


@pytest.fixture
async def admin_user(db_session) -> User:
    """The bootstrap admin, materialized on first access."""
    users = await AuthService(db_session).list_users()
    return next(u for u in users if u.role == UserRole.ADMIN)


@pytest.fixture
async def test_user(db_session, test_user_data) -> User:
    """Create an analyst in the store."""
    result = await AuthService(db_session).create_user(
        email=test_user_data["email"],
        username=test_user_data["username"],
        password=test_user_data["password"],
        first_name=test_user_data["first_name"],
        last_name=test_user_data["last_name"],
    )
    return result.user


@pytest.fixture
async def other_user(db_session) -> User:
    """A second analyst."""
    result = await AuthService(db_session).create_user(
        email="other@example.com",
        username="other",
        password="otherpassword",
        first_name="Olive",
        last_name="Other",
    )
    return result.user


async def _headers_for(db_session, username: str, password: str) -> dict:
    result = await AuthService(db_session).login(username, password)
    tokens = create_token_pair(result.user.id, result.session.id)
    return {"Authorization": f"Bearer {tokens.access_token}"}


@pytest.fixture
async def auth_headers(db_session, test_user, test_user_data) -> dict:
    """Authorization headers for the analyst."""
    return await _headers_for(db_session, test_user.username, test_user_data["password"])


@pytest.fixture
async def other_headers(db_session, other_user) -> dict:
    return await _headers_for(db_session, other_user.username, "otherpassword")


@pytest.fixture
async def admin_headers(db_session, admin_user) -> dict:
    """Authorization headers for the bootstrap admin."""
    return await _headers_for(db_session, "axel", "0000")


@pytest.fixture
def gateway_failure():
    """Factory for gateway errors of a given category."""

    def _make(category: AnalysisFailure) -> AnalysisError:
        return AnalysisError(f"simulated {category.value}", category)

    return _make


@pytest.fixture
def analysis_factory():
    """Factory for analysis payloads."""
    return make_analysis
