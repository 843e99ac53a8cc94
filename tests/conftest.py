"""
Shared pytest fixtures for the portal tests.

Sets required environment variables BEFORE any portal module is imported so
that pydantic-settings and SQLAlchemy engine initialisation use safe test values.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator, Dict, Tuple

# ── Set env vars before any portal import ─────────────────────────────────────
os.environ.setdefault("BOT_TOKEN", "test-token-for-pytest")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PROFILE_SYNC_DELAY", "0")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# ── Portal imports (safe after env vars are set) ──────────────────────────────
from portal.exceptions import StorageError
from portal.models.base import Base
from portal.services.document_staging import StagedFile
from portal.services.identity_service import DatabaseIdentityService
from portal.services.orchestrator import RegistrationOrchestrator
from portal.services.registration_store import create_community, create_district


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over an isolated in-memory SQLite database.
    StaticPool keeps one connection so every session sees the same schema/data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def location(session_factory) -> Tuple[int, int]:
    """(district_id, community_id) of a seeded district with one community."""
    async with session_factory() as session:
        district = await create_district(session, "Petaling")
        community = await create_community(session, district.id, "Taman Mawar")
        await session.commit()
        return district.id, community.id


# ── Collaborators ─────────────────────────────────────────────────────────────

class FakeStorage:
    """In-memory object storage; uploads of types listed in `fail_types` fail."""

    def __init__(self) -> None:
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.fail_types: set[str] = set()

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        document_type = path.split("/")[1]
        if document_type in self.fail_types:
            raise StorageError(path, "simulated outage")
        self.objects[path] = (data, content_type)
        return path

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/{path}"


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def identity(session_factory) -> DatabaseIdentityService:
    return DatabaseIdentityService(session_factory, bcrypt_rounds=4)


@pytest.fixture
def orchestrator(session_factory, identity, storage) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(session_factory, identity, storage, profile_sync_delay=0)


# ── Data helpers ──────────────────────────────────────────────────────────────

def _make_file(name: str = "document.pdf", content_type: str = "application/pdf", size: int = 64) -> StagedFile:
    return StagedFile(name=name, content=b"x" * size, content_type=content_type)


@pytest.fixture
def make_file():
    """Factory fixture — returns a callable that builds a StagedFile."""
    return _make_file


VALID_STEP1 = {
    "full_name":     "Aminah Binti Ali",
    "phone":         "0123456789",
    "address":       "No 1, Jalan Mawar",
    "business_name": "Aminah Cleaning Services",
    "business_type": "cleaning",
    "email":         "aminah@example.com",
    "password":      "secret123",
}


@pytest.fixture
def step1_values(location) -> dict:
    """Factory fixture: valid step-1 values, overridable per test."""
    district_id, community_id = location

    def _build(**overrides) -> dict:
        values = dict(VALID_STEP1, district_id=district_id, community_id=community_id)
        values.update(overrides)
        return values
    return _build
