"""
Shared fixtures.

Every test gets its own SQLite file, so concurrent sessions behave like
separate requests against a real database. Services receive a FakeClock
so windows and expiries can be crossed without sleeping.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortlink.api.endpoints import get_preview_fetcher
from shortlink.core.rate_limit import limiter
from shortlink.db.models import Account, Link
from shortlink.db.session import get_session, init_models, make_session_maker
from shortlink.db.sqlite_adapter import SQLiteAdapter
from shortlink.services.link_preview import LinkPreview

START_MS = 1_700_000_000_000


class FakeClock:
    """Callable clock returning a pinned epoch-ms value."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = SQLiteAdapter(busy_timeout=5).create_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shortlink-test.db'}"
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_account(session, clock):
    """Factory for committed accounts."""
    async def factory(email: str = "owner@example.com", role: str = "user", **fields) -> Account:
        account = Account(email=email, role=role, created_at=clock(), **fields)
        session.add(account)
        await session.commit()
        return account
    return factory


@pytest.fixture
def make_link(session, clock):
    """Factory inserting a link row directly, bypassing validation."""
    async def factory(owner: Account, slug: str, url: str = "https://example.com/", **fields) -> Link:
        link = Link(slug=slug, url=url, owner_id=owner.id, created_at=clock(), **fields)
        session.add(link)
        await session.commit()
        return link
    return factory


async def fake_preview_fetcher(url: str) -> LinkPreview:
    return LinkPreview(
        title="Spring Promo",
        tags=[
            ("property", "og:title", "Spring Promo"),
            ("property", "og:image", "https://cdn.example.com/promo.png"),
        ],
    )


@pytest_asyncio.fixture
async def client(session_maker, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the app, with the database swapped for the test file.

    Edge (per-IP) rate limiting is switched off; the per-key burst limiter
    and quota still apply.
    """
    from shortlink.main import app

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_preview_fetcher] = lambda: fake_preview_fetcher
    monkeypatch.setattr(limiter, "enabled", False)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
