import os
import uuid
from importlib import import_module

# Settings are read at import time
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret-with-enough-length-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("AWS_REGION", "eu-central-1")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from okr_tracker.constants.constants import UserRole, UserStatus
from okr_tracker.core.config import settings
from okr_tracker.core.database import aget_db, session_manager
from okr_tracker.main import app
from okr_tracker.models.base import Base
from okr_tracker.models.organization import Organization
from okr_tracker.models.profile import Profile
from okr_tracker.services.SuggestionCache import SuggestionCache

for module in settings.DB_MODELS:
    import_module(module)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(engine, session_factory, monkeypatch):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[aget_db] = override_get_db
    monkeypatch.setattr(session_manager, "engine", engine)
    app.state.suggestion_cache = SuggestionCache()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def organization(db):
    org = Organization(
        name=settings.DEFAULT_ORGANIZATION_NAME,
        slug=settings.DEFAULT_ORGANIZATION_SLUG,
    )
    db.add(org)
    await db.commit()
    return org


@pytest.fixture
def make_member(db, organization):
    async def _make_member(role: UserRole = UserRole.employee, name: str = "Anna Schmidt", **kwargs) -> Profile:
        fields = {
            "id": str(uuid.uuid4()),
            "email": f"{uuid.uuid4().hex[:8]}@example.com",
            "status": UserStatus.active,
            "organization_id": organization.id,
        }
        fields.update(kwargs)
        profile = Profile(name=name, role=role, **fields)
        db.add(profile)
        await db.commit()
        return profile

    return _make_member


@pytest.fixture
async def member(make_member):
    return await make_member()
