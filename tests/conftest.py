"""Shared test fixtures — single test DB for all test modules."""
from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Use a shared in-memory DB with check_same_thread=False and StaticPool
# so all connections see the same in-memory database.
from sqlalchemy.pool import StaticPool

from src.db.engine import get_session, json_serializer
from src.db.tables import Base
from src.models import Identity, Role
from src.services.storage import LocalObjectStore, get_object_store

TEST_DB_URL = "sqlite+aiosqlite:///file:test?mode=memory&cache=shared&uri=true"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    json_serializer=json_serializer,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)


async def override_get_session():
    async with TestSession() as session:
        yield session


# Import app and override BEFORE any test module imports app
from src.api.main import app  # noqa: E402

app.dependency_overrides[get_session] = override_get_session

import src.db.engine as _engine_mod  # noqa: E402
_engine_mod.async_session = TestSession
_engine_mod.engine = test_engine


@asynccontextmanager
async def get_test_session():
    """Context manager for seeding data in tests."""
    async with TestSession() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create tables before each test, drop after."""
    import src.db.user_tables  # noqa: F401
    import src.db.report_tables  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def store(tmp_path):
    """Filesystem object store in a per-test directory, wired into the app."""
    local = LocalObjectStore(tmp_path / "storage", "/static")
    app.dependency_overrides[get_object_store] = lambda: local
    yield local
    app.dependency_overrides.pop(get_object_store, None)


@pytest_asyncio.fixture
async def client(store):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def grant_role(user_id: str, role: Role = Role.ADMIN) -> None:
    from src.db.repository import RoleRepository

    async with get_test_session() as session:
        await RoleRepository(session).upsert(user_id, role)
        await session.commit()


@pytest.fixture
def signup(client):
    """Factory: create an account through the API. Returns id, identity and auth headers."""

    async def _signup(username: str, moderator: bool = False) -> dict:
        resp = await client.post("/api/v1/auth/signup", json={
            "email": f"{username}@example.com", "password": "pass1234", "username": username,
        })
        assert resp.status_code == 201, resp.text
        data = resp.json()
        user_id = data["user"]["id"]
        if moderator:
            await grant_role(user_id)
        return {
            "id": user_id,
            "identity": Identity(user_id=user_id, email=data["user"]["email"]),
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
            "tokens": data,
        }

    return _signup


@pytest_asyncio.fixture
async def author(signup):
    return await signup("alice")


@pytest_asyncio.fixture
async def moderator(signup):
    return await signup("mod", moderator=True)


RECIPE = {
    "title": "Lemon Lentil Soup",
    "description": "Bright and cheap weeknight soup",
    "ingredients": ["1 cup red lentils", "1 lemon", "4 cups stock"],
    "steps": ["Simmer lentils in stock", "Finish with lemon"],
    "prep_time": 10,
    "cook_time": 25,
    "servings": 4,
    "tags": ["soup", "vegan"],
}

PACKAGING_IDEA = {
    "title": "Egg Carton Seed Starter",
    "description": "Start seedlings in a cardboard egg carton",
    "materials": ["cardboard egg carton", "potting soil"],
    "steps": ["Fill each cup with soil", "Plant one seed per cup"],
}
