"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ALLOWED_CLIENT_ID", "test-client")
os.environ.setdefault("ALLOWED_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("PAYMENT__LEMONSQUEEZY__API_KEY", "test-api-key")
os.environ.setdefault("PAYMENT__LEMONSQUEEZY__STORE_ID", "1234")
os.environ.setdefault("PAYMENT__LEMONSQUEEZY__WEBHOOK_SECRET", "whsec-test")
# Keep retry backoff short in provider tests
os.environ.setdefault("PAYMENT__RETRY__BASE_BACKOFF", "0.01")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from infrastructure.database import create_tables
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


@pytest_asyncio.fixture
async def session_factory():
    # One shared in-memory connection so every session sees the same tables
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(bind=engine)
    try:
        yield async_sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    def _factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)

    return _factory
