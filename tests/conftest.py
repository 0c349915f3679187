"""Test configuration and fixtures for pageql."""

import logging
import os
from typing import AsyncGenerator, Generator

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@pytest.fixture(scope="function")
def engine():
    """Create a test database engine for each test function."""
    test_db_url = os.getenv('PAGEQL_TEST_DATABASE_URL')
    if test_db_url:
        engine = create_engine(test_db_url, echo=False, future=True)
        # Clean slate on external databases
        Base.metadata.drop_all(engine)
        logger.info(f"Using external database: {test_db_url}")
    else:
        engine = create_engine("sqlite://", echo=False, future=True)
    Base.metadata.create_all(engine)

    yield engine

    if test_db_url:
        Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    """Create a new database session for each test function."""
    factory = sessionmaker(engine)
    with factory() as session:
        yield session


@pytest.fixture(scope="function")
async def async_engine():
    """In-memory aiosqlite engine for the async service tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture(scope="function")
def captured_sql(engine):
    """Collect every statement sent to the engine, lower-cased and whitespace-normalized."""
    statements = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(" ".join(statement.lower().split()))

    event.listen(engine, "before_cursor_execute", _capture)
    yield statements
    event.remove(engine, "before_cursor_execute", _capture)


# Import fixtures from fixtures module
from tests.fixtures import async_populated, populated  # noqa: E402,F401
