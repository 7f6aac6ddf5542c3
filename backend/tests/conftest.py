"""Shared fixtures.

The settings singleton and the module-level engine are built at import
time, so the environment is pointed at in-memory SQLite before anything
from ``creditcheck`` is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("CREDIT_BUREAU_PROVIDER", "mock")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from creditcheck.database import Base  # noqa: E402
from creditcheck.models import User  # noqa: E402
from creditcheck.services.credit_bureau.mock_bureau import reset_mock_bureau  # noqa: E402


@pytest_asyncio.fixture
async def db_session():
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def user(db_session):
    applicant = User(email="asha@example.com", first_name="Asha", last_name="Rao", phone="9876543210")
    db_session.add(applicant)
    await db_session.flush()
    return applicant


@pytest.fixture(autouse=True)
def _clean_mock_bureau():
    reset_mock_bureau()
    yield
    reset_mock_bureau()
