"""Unit of Work pattern implementation.

One unit of work is one transaction: every lifecycle or admission operation
reads, validates and writes inside a single UnitOfWork so that a failure at
any step leaves topics and registrations in their pre-transaction state.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capstone.registrations.repository import (
    LecturerRegistrationRepository,
    StudentRegistrationRepository,
)
from capstone.shared.exceptions import StorageTimeoutError
from capstone.shared.utils.logging import get_logger
from capstone.topics.repository import PhaseHistoryRepository, TopicRepository

logger = get_logger(__name__)

STORAGE_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, asyncio.TimeoutError)


class UnitOfWork:
    """Coordinates the topic and registration repositories over one session.

    Usage:
        async with UnitOfWork(session_factory) as uow:
            topic = await uow.topics.get_for_update(topic_id)
            ...
            await uow.commit()

    Leaving the block without ``commit()`` rolls back. Storage failures
    (driver errors, stale version, timeouts) are rolled back and re-raised
    as StorageTimeoutError.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | Callable[[], AsyncSession],
        timeout: float | None = None,
        operation: str = "unit_of_work",
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout
        self._operation = operation
        self._session: AsyncSession | None = None
        self._committed = False

        self._topics: TopicRepository | None = None
        self._phase_histories: PhaseHistoryRepository | None = None
        self._student_registrations: StudentRegistrationRepository | None = None
        self._lecturer_registrations: LecturerRegistrationRepository | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Unit of Work not started. Use 'async with' context manager.")
        return self._session

    # ===========================================
    # REPOSITORY ACCESSORS (Lazy Loading)
    # ===========================================

    @property
    def topics(self) -> TopicRepository:
        if self._topics is None:
            self._topics = TopicRepository(self.session)
        return self._topics

    @property
    def phase_histories(self) -> PhaseHistoryRepository:
        if self._phase_histories is None:
            self._phase_histories = PhaseHistoryRepository(self.session)
        return self._phase_histories

    @property
    def student_registrations(self) -> StudentRegistrationRepository:
        if self._student_registrations is None:
            self._student_registrations = StudentRegistrationRepository(self.session)
        return self._student_registrations

    @property
    def lecturer_registrations(self) -> LecturerRegistrationRepository:
        if self._lecturer_registrations is None:
            self._lecturer_registrations = LecturerRegistrationRepository(self.session)
        return self._lecturer_registrations

    # ===========================================
    # TRANSACTION MANAGEMENT
    # ===========================================

    async def __aenter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        self._committed = False
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if self._session is None:
            return

        try:
            if exc_type is not None or not self._committed:
                await self._session.rollback()
            if exc_type is not None:
                logger.debug(
                    "transaction_rolled_back",
                    operation=self._operation,
                    exception_type=exc_type.__name__,
                )
        finally:
            await self._session.close()
            self._session = None
            self._topics = None
            self._phase_histories = None
            self._student_registrations = None
            self._lecturer_registrations = None

        if exc_val is not None and isinstance(exc_val, STORAGE_ERRORS):
            logger.error(
                "storage_operation_failed",
                operation=self._operation,
                error_type=type(exc_val).__name__,
            )
            raise StorageTimeoutError(self._operation, type(exc_val).__name__) from exc_val

    async def commit(self) -> None:
        """Flush and commit the transaction within the storage timeout."""
        if self._timeout is not None:
            await asyncio.wait_for(self.session.commit(), timeout=self._timeout)
        else:
            await self.session.commit()
        self._committed = True
