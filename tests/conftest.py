"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite + StaticPool) with
the current schema. The identity provider is replaced by ``FakeAuthClient``;
Stripe calls made through module-level helpers are patched per test, while a
real ``StripeClient`` with a dummy key verifies webhook signatures locally.
"""

import base64
import hashlib
import hmac
import json
import time
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from stripe import StripeClient

from billing_bridge.auth.supabase import AuthUser, get_auth_client
from billing_bridge.billing.stripe_client import get_stripe_client
from billing_bridge.config import settings
from billing_bridge.database import Base, get_db
from billing_bridge.errors import AuthenticationFailure
from billing_bridge.main import app
from billing_bridge.models.subscription import Subscription

WEBHOOK_SECRET = "whsec_test_secret"
APP_URL = "https://app.example.com"

PLANS = ("talent", "networking", "bundle")
BILLINGS = ("monthly", "yearly", "lifetime")


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


class FakeAuthClient:
    """Stands in for SupabaseAuthClient: known tokens map to users."""

    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {}
        self.calls: list[str] = []

    def add_user(self, token: str, user_id: str, email: str | None = None) -> AuthUser:
        user = AuthUser(id=user_id, email=email)
        self.users[token] = user
        return user

    async def get_user(self, access_token: str) -> AuthUser:
        self.calls.append(access_token)
        user = self.users.get(access_token)
        if user is None:
            raise AuthenticationFailure("Invalid access token", details="invalid JWT")
        return user


# ---------------------------------------------------------------------------
# Settings: webhook secret, app URL and one price per (plan, billing)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def billing_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "app_url", APP_URL)
    monkeypatch.setattr(settings, "supabase_url", "https://abcdefgh.supabase.co")
    for plan in PLANS:
        for billing in BILLINGS:
            monkeypatch.setattr(settings, f"stripe_price_{plan}_{billing}", f"price_{plan}_{billing}")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP client with dependency overrides
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_client() -> FakeAuthClient:
    return FakeAuthClient()


@pytest.fixture
def stripe_client() -> StripeClient:
    return StripeClient("sk_test_dummy")


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    auth_client: FakeAuthClient,
    stripe_client: StripeClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB and fake providers."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def test_user(auth_client: FakeAuthClient) -> AuthUser:
    return auth_client.add_user("token-u1", "u1", email="u1@test.com")


@pytest.fixture
def auth_headers(test_user: AuthUser) -> dict[str, str]:
    return {"Authorization": "Bearer token-u1"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def add_subscription(
    db_session: AsyncSession,
    owner_id: str,
    plan: str,
    status: str = "active",
    billing: str | None = "monthly",
    current_period_end: datetime | None = None,
    stripe_customer_id: str | None = None,
    stripe_subscription_id: str | None = None,
) -> Subscription:
    """Insert a subscription row directly in the DB."""
    subscription = Subscription(
        owner_id=owner_id,
        plan=plan,
        billing=billing,
        status=status,
        current_period_end=current_period_end,
        stripe_customer_id=stripe_customer_id,
        stripe_subscription_id=stripe_subscription_id,
    )
    db_session.add(subscription)
    await db_session.flush()
    return subscription


def make_event(event_type: str, data_object: dict, event_id: str = "evt_test_1") -> dict:
    """Build a Stripe event payload."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Produce a Stripe-Signature header value for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def signed_request(event: dict) -> tuple[str, dict[str, str]]:
    """Serialize an event and return (body, headers) for POST /webhook."""
    body = json.dumps(event)
    return body, {"stripe-signature": sign_payload(body), "content-type": "application/json"}


def session_cookie(access_token: str) -> str:
    """Encode a Supabase SSR session cookie value carrying ``access_token``."""
    session = json.dumps({"access_token": access_token, "token_type": "bearer"})
    encoded = base64.urlsafe_b64encode(session.encode()).decode().rstrip("=")
    return f"base64-{encoded}"
