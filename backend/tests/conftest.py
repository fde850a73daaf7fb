import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from eth_account import Account
from eth_account.messages import encode_defunct
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import rwa_auth.models  # noqa: F401 - register tables on Base
from rwa_auth.core.challenge import ChallengeIssuer
from rwa_auth.core.nonce_store import InMemoryNonceStore
from rwa_auth.core.security import SessionIssuer
from rwa_auth.database import Base, get_db
from rwa_auth.services.auth_service import AuthService


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def sign(account, message: str) -> str:
    signed = account.sign_message(encode_defunct(text=message))
    return "0x" + signed.signature.hex().removeprefix("0x")


@pytest.fixture
def sign_message():
    return sign


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def account():
    return Account.create()


@pytest.fixture
def admin_account():
    return Account.create()


@pytest.fixture
def issuer(clock):
    return ChallengeIssuer("Test Platform", ttl_seconds=300, clock=clock)


@pytest.fixture
def nonce_store(issuer):
    return InMemoryNonceStore(issuer, retention_seconds=600)


@pytest.fixture
def sessions(clock):
    return SessionIssuer("unit-test-secret", clock=clock)


@pytest.fixture
def auth_service(nonce_store, sessions, admin_account):
    return AuthService(nonce_store, sessions, approved_admins=frozenset({admin_account.address}))


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def test_app(session_factory, auth_service):
    from rwa_auth.core.deps import get_auth_service
    from rwa_auth.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    yield app
    app.dependency_overrides.clear()
