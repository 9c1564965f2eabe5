from collections.abc import AsyncGenerator
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from wordmaster.infra.database import Base, enable_sqlite_foreign_keys, get_session
from wordmaster.main import create_app
from wordmaster.v1.review.routes import get_today

# Import models to ensure they're registered
from wordmaster.v1.catalog import models as catalog_models  # noqa: F401
from wordmaster.v1.review import models as review_models  # noqa: F401

TODAY = date(2026, 3, 2)


@pytest.fixture
def today() -> date:
    """Fixed study day for deterministic scheduling."""
    return TODAY


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with AsyncSession(test_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def cet4_items(db_session: AsyncSession) -> list[int]:
    """A 'cet4' collection with five words and an empty 'gre' collection."""
    cet4 = catalog_models.Collection(id="cet4", name="CET-4", language="en")
    gre = catalog_models.Collection(id="gre", name="GRE", language="en")
    db_session.add_all([cet4, gre])

    items = [
        catalog_models.Item(
            collection_id="cet4",
            position=position,
            word=word,
            payload={"translations": [{"pos": "n.", "cn": f"meaning of {word}"}]},
        )
        for position, word in enumerate(["abandon", "ability", "abroad", "absence", "absolute"])
    ]
    db_session.add_all(items)
    await db_session.commit()
    return [item.id for item in items]


@pytest.fixture
def app(db_session, today):
    """Create a test FastAPI application bound to the test database."""
    app = create_app(init_database=False)

    app.dependency_overrides[get_session] = lambda: db_session
    app.dependency_overrides[get_today] = lambda: today

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
