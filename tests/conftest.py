"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fakes import InMemoryAnalytics, InMemoryBalances, InMemoryDeadletters, InMemoryLedger
from stripe_helpers import WEBHOOK_SECRET
from tipjar.core.config import settings
from tipjar.db.base import Base, import_models
from tipjar.db.session import get_async_db
from tipjar.main import app
from tipjar.models.profile import Profile
from tipjar.services.settlement_service import SettlementReconciler


@pytest_asyncio.fixture
async def engine(tmp_path):
    import_models()
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tipjar.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def alice(session_factory) -> Profile:
    async with session_factory() as session:
        profile = Profile(user_id="u1", username="alice", min_tip_amount=100)
        session.add(profile)
        await session.commit()
    return profile


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the test database wired in."""
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def stores():
    return {
        "ledger": InMemoryLedger(),
        "balances": InMemoryBalances(),
        "analytics": InMemoryAnalytics(),
        "deadletters": InMemoryDeadletters(),
    }


@pytest.fixture
def reconciler(stores) -> SettlementReconciler:
    return SettlementReconciler(webhook_secret=WEBHOOK_SECRET, **stores)
