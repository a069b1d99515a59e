import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

# --- SETUP: point the app at an in-memory database before importing it ---
os.environ["TESTING"] = "True"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from main import app
from app.database.connection import Base, engine, AsyncSessionLocal, get_db
from app.database import models  # noqa: F401  (registers tables)

CREDENTIAL_VARS = (
    "ONESIGNAL_APP_ID",
    "ONESIGNAL_REST_API_KEY",
    "FIREBASE_SERVICE_ACCOUNT",
    "FIREBASE_CREDENTIALS_PATH",
    "SITE_URL",
)


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def onesignal_env(monkeypatch):
    monkeypatch.setenv("ONESIGNAL_APP_ID", "test-app-id")
    monkeypatch.setenv("ONESIGNAL_REST_API_KEY", "test-rest-key")


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.dependency_overrides[get_db]
