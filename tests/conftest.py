"""Shared test configuration and fixtures for proficiency exam tests"""

import asyncio
import logging
import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from tests.config import TEST_PASSWORD, test_config

# The app reads its configuration at import time
os.environ["DATABASE_URL"] = test_config["database_url"]
os.environ["REDIS_URL"] = test_config["redis_url"]
os.environ["PAYSTACK_SECRET_KEY"] = test_config["paystack_secret_key"]
os.environ["PAYSTACK_BASE_URL"] = test_config["paystack_base_url"]
os.environ["ENVIRONMENT"] = test_config["environment"]
os.environ["PAYMENT_SANDBOX_MODE"] = "false"
os.environ["SWEEP_INTERVAL_SECONDS"] = "0"

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from proficiency_exam.auth.dependencies import get_clock
from proficiency_exam.auth.passwords import hash_password
from proficiency_exam.backends.payment_verifier import (
    PaymentVerification,
    PaymentVerifier,
    VerificationStatus,
)
from proficiency_exam.main import app
from proficiency_exam.models.database import get_db, get_redis
from proficiency_exam.models.test_session import PaymentStatus, TestSession
from proficiency_exam.services.auth_token_service import AuthTokenService
from proficiency_exam.services.paystack_service import get_payment_verifier
from proficiency_exam.services.session_token_store import SessionTokenStore
from proficiency_exam.services.temp_registration_service import (
    TempRegistrationService,
)
from proficiency_exam.services.test_session_service import TestSessionService
from proficiency_exam.services.user_service import UserService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)



class FrozenClock:
    """Clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeVerifier(PaymentVerifier):
    """Payment verifier returning a canned result for any reference"""

    def __init__(self):
        self.result = PaymentVerification(
            reference="",
            status=VerificationStatus.SUCCESS,
            amount=1600,
            currency="USD",
        )
        self.error = None
        self.calls = []

    def set_result(self, **kwargs) -> None:
        self.result = replace(self.result, **kwargs)

    async def verify(self, reference: str) -> PaymentVerification:
        self.calls.append(reference)
        # Yield so concurrent callers interleave at the provider call
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return replace(self.result, reference=reference)


@pytest.fixture
def engine():
    """In-memory SQLite database shared by every connection of a test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def _db_session(engine):
    """Private DB session for fixtures and state assertions"""
    session = Session(engine)
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def user_service(_db_session):
    return UserService(_db_session)


@pytest.fixture
def temp_registration_service(_db_session, clock):
    return TempRegistrationService(_db_session, clock)


@pytest.fixture
def auth_token_service(_db_session, clock):
    return AuthTokenService(_db_session, clock)


@pytest.fixture
def session_token_store(redis_client, clock):
    return SessionTokenStore(redis_client, clock)


@pytest.fixture
def session_service(_db_session, session_token_store, clock):
    return TestSessionService(_db_session, session_token_store, clock)


@pytest.fixture
def create_user(user_service):
    """Factory for durable users with a known password"""
    counter = {"n": 0}

    def _create_user(email=None, password=TEST_PASSWORD):
        counter["n"] += 1
        return user_service.create_user(
            first_name="Ada",
            last_name="Obi",
            email=email or f"candidate{counter['n']}@example.com",
            phone="+2348000000000",
            password_hash=hash_password(password),
        )

    return _create_user


@pytest.fixture
def paid_session(_db_session, session_service):
    """Factory for a paid session (optionally owned) plus its session token"""

    def _paid_session(user_id=None):
        session, token = session_service.create_pre_payment()
        session.user_id = user_id
        session.payment_status = PaymentStatus.COMPLETED
        _db_session.add(session)
        _db_session.commit()
        _db_session.refresh(session)
        return session, token

    return _paid_session


@pytest.fixture
def get_session(_db_session):
    """Reload a session from the database, bypassing the identity map"""

    def _get_session(session_id) -> TestSession:
        _db_session.expire_all()
        return _db_session.get(TestSession, session_id)

    return _get_session


@pytest.fixture
def client(_db_session, redis_client, clock, verifier):
    """Test client wired to the test database, fake Redis, frozen clock and fake verifier"""
    original_overrides = app.dependency_overrides.copy()

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = lambda: _db_session
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_payment_verifier] = lambda: verifier

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)
