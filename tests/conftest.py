"""
Pytest configuration and fixtures for PetBox auth tests.

Provides test database isolation, an in-process counter store and the
stub OTP provider, wired into the app through dependency overrides.
"""
import os

# Settings are read at import time; pin a local, self-contained config first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["OTP_PROVIDER"] = "stub"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,  # Set to True for SQL debugging
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create the schema once per test session."""
    from petbox_auth.db import Base
    from petbox_auth import models  # noqa: F401  registers tables

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """
    Provide a clean database session for each test.

    Everything runs inside one outer transaction that is rolled back
    after the test, so no rows leak between tests.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def store():
    from petbox_auth.core.counter_store import InMemoryCounterStore

    return InMemoryCounterStore()


@pytest.fixture
def otp_provider():
    from petbox_auth.services.otp import StubOTPProvider

    return StubOTPProvider(code_length=4)


@pytest.fixture
def social_providers():
    """Empty registry by default; social tests install fakes into it."""
    return {}


@pytest.fixture(scope="function")
def client(db, store, otp_provider, social_providers):
    """
    FastAPI TestClient sharing the test db session, store and OTP provider.

    Uses https so the Secure session cookies are sent back on later requests.
    """
    from fastapi.testclient import TestClient

    from petbox_auth.db import get_db
    from petbox_auth.dependencies.services import (
        get_counter_store,
        get_otp_provider,
        get_social_providers,
    )
    from petbox_auth.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_counter_store] = lambda: store
    app.dependency_overrides[get_otp_provider] = lambda: otp_provider
    app.dependency_overrides[get_social_providers] = lambda: social_providers

    try:
        with TestClient(app, base_url="https://testserver", raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def settings():
    from petbox_auth.core.config import settings

    return settings


@pytest.fixture
def users(db):
    from petbox_auth.services.user_repository import UserRepository

    return UserRepository(db)


@pytest.fixture
def token_service(settings):
    from petbox_auth.services.tokens import TokenService

    return TokenService(settings)


@pytest.fixture
def test_user(users):
    """Password account: phone +84912345678, password Petbox@123"""
    from petbox_auth.core.security import hash_password

    return users.create(
        {
            "full_name": "Nguyen Van An",
            "phone": "+84912345678",
            "username": "vanan",
            "email": "an@petbox.vn",
            "password_hash": hash_password("Petbox@123"),
        }
    )


@pytest.fixture
def make_social_provider():
    """
    Factory for providers that skip the HTTP exchange and return a fixed
    profile, e.g. make_social_provider("google", "1077", name="Tran Thi Binh").
    """
    from petbox_auth.services.social import NormalizedProfile, SocialProvider

    def factory(provider_name, provider_user_id, name=None, email=None, avatar=None):
        profile = NormalizedProfile(
            provider=provider_name,
            provider_user_id=provider_user_id,
            name=name,
            email=email,
            avatar=avatar,
        )

        class FakeSocialProvider(SocialProvider):
            name = provider_name
            artifact_fields = {"code": "code"}

            async def _exchange(self, client, artifact):
                return "fake-access-token"

            async def _fetch_profile(self, client, access_token):
                return profile

        return FakeSocialProvider()

    return factory
