# tests/conftest.py
import os

# Settings are read at import time, so the environment must be ready first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["CSRF_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SENDGRID_API_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient

from refhub.api.main import create_app
from refhub.auth.local import LocalAuthService
from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.referral.codes import ReferralCodeGenerator
from refhub.referral.ledger import ReferralLedger
from refhub.referral.pipeline import AttributionPipeline
from refhub.rewards.ledger import RewardLedger
from refhub.storage.db import Database

DEFAULT_PASSWORD = "Password123"


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    db = Database("sqlite://")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def email_service(mocker):
    service = mocker.AsyncMock(spec=EmailService)
    service.send_welcome_email.return_value = True
    service.send_password_reset_email.return_value = True
    return service


@pytest.fixture
def auth_service(database):
    return LocalAuthService(database)


@pytest.fixture
def referral_ledger(database):
    return ReferralLedger(database)


@pytest.fixture
def reward_ledger(database):
    return RewardLedger(database)


@pytest.fixture
def cache():
    return ResponseCache()


@pytest.fixture
def pipeline(auth_service, referral_ledger, reward_ledger, cache, email_service):
    return AttributionPipeline(
        auth_service=auth_service,
        code_generator=ReferralCodeGenerator(auth_service.referral_code_exists),
        referral_ledger=referral_ledger,
        reward_ledger=reward_ledger,
        cache=cache,
        notifier=email_service,
    )


@pytest.fixture
def make_user(auth_service):
    """Insert a user directly, bypassing the pipeline."""
    def _make_user(username: str, referral_code: str, email: str | None = None):
        return auth_service.create_user(
            email=email or f"{username}@example.com",
            username=username,
            password_hash=auth_service.hash_password(DEFAULT_PASSWORD),
            referral_code=referral_code,
        )
    return _make_user


@pytest.fixture
def app(database, email_service):
    return create_app(database=database, email_service=email_service)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client):
    """POST /api/register with sensible defaults."""
    async def _register(username: str, referral_code: str | None = None, **overrides):
        payload = {
            "email": f"{username}@example.com",
            "username": username,
            "password": DEFAULT_PASSWORD,
        }
        if referral_code is not None:
            payload["referral_code"] = referral_code
        payload.update(overrides)
        return await client.post("/api/register", json=payload)
    return _register


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
