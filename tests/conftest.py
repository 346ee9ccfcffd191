"""Global pytest fixtures for the topic lifecycle and admission services.

Integration fixtures run against a real async SQLite database, one file per
test, so every test starts from an empty schema.
"""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from capstone.infrastructure.database.session import create_schema, create_session_factory
from capstone.registrations.service import LecturerRegistrationService, StudentRegistrationService
from capstone.topics.locks import TopicLockRegistry
from capstone.topics.service import TopicLifecycleService

# ===========================================
# DATABASE FIXTURES
# ===========================================


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Async SQLite engine with the schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'capstone_test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


# ===========================================
# SERVICE FIXTURES
# ===========================================


@pytest.fixture
def topic_locks() -> TopicLockRegistry:
    """A registry per test so no lock state leaks between event loops."""
    return TopicLockRegistry()


@pytest.fixture
def lifecycle(session_factory, topic_locks) -> TopicLifecycleService:
    return TopicLifecycleService(session_factory, topic_locks)


@pytest.fixture
def admissions(lifecycle: TopicLifecycleService) -> StudentRegistrationService:
    return lifecycle.students


@pytest.fixture
def lecturers(lifecycle: TopicLifecycleService) -> LecturerRegistrationService:
    return lifecycle.lecturers


# ===========================================
# IDENTITY FIXTURES
# ===========================================


@pytest.fixture
def lecturer_id():
    return uuid4()


@pytest.fixture
def student_ids():
    return [uuid4() for _ in range(4)]
