"""Test configuration and fixtures."""

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from growthconnect.metadata import Base, Workspace, WorkspaceMember
from growthconnect.oauth.client import ProviderClient
from growthconnect.oauth.config import ClientCredentials, OAuthConfig


DASHBOARD_URL = "https://app.example.com/dashboard/integrations"
FALLBACK_URL = "https://app.example.com/integrations"
CALLBACK_URL = "https://api.example.com/oauth/callback"


@pytest.fixture
def test_db():
    """Create test database."""
    # One shared connection so TestClient worker threads see the same schema.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def oauth_config():
    return OAuthConfig(
        state_secret="test-state-secret",
        encryption_key="test-encryption-key",
        callback_url=CALLBACK_URL,
        fallback_redirect_url=FALLBACK_URL,
        allowed_origins=("https://app.example.com",),
        trusted_domain_suffixes=("lovable.app",),
        dev_origins=("http://localhost:5173",),
        allow_dev_origins=False,
        client_credentials={
            "google": ClientCredentials("google-client-id", "google-client-secret"),
            "meta": ClientCredentials("meta-app-id", "meta-app-secret"),
        },
    )


@pytest.fixture
def workspace(test_db):
    # SQLAlchemy UUID(as_uuid=True) bindings in tests require UUID objects.
    row = Workspace(id=uuid.uuid4(), name="Acme Marketing")
    test_db.add(row)
    test_db.add(WorkspaceMember(workspace_id=row.id, user_id="user-1", role="owner"))
    test_db.commit()
    return row


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


class ProviderStub:
    """Serves token and user-info responses through ``httpx.MockTransport``."""

    def __init__(self):
        self.token_status = 200
        self.token_payload = {
            "access_token": "ya29.access-token-value",
            "refresh_token": "1//refresh-token-value",
            "expires_in": 3599,
            "scope": "https://www.googleapis.com/auth/analytics.readonly openid email profile",
            "token_type": "Bearer",
        }
        self.identity_status = 200
        self.identity_payload = {"id": "1234567890", "email": "owner@example.com", "name": "Owner"}
        self.token_error = None
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if self.token_error is not None:
                raise self.token_error
            return httpx.Response(self.token_status, json=self.token_payload)
        return httpx.Response(self.identity_status, json=self.identity_payload)

    @property
    def token_requests(self):
        return [request for request in self.requests if request.method == "POST"]

    def client(self) -> ProviderClient:
        return ProviderClient(timeout=5.0, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider_stub():
    return ProviderStub()
