"""Service layer for the topic lifecycle engine."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capstone.infrastructure.database.models import Topic
from capstone.infrastructure.database.session import get_session_factory
from capstone.infrastructure.database.unit_of_work import UnitOfWork
from capstone.registrations.capacity import CapacityOracle, status_for_occupancy
from capstone.registrations.enums import (
    ACTIVE_STUDENT_STATUSES,
    ActorRole,
    LecturerRole,
    StudentRegistrationStatus,
)
from capstone.registrations.service import (
    LecturerRegistrationService,
    StudentRegistrationService,
)
from capstone.shared.utils.logging import get_logger
from capstone.topics.config import get_topic_settings
from capstone.topics.enums import PeriodPhase, TopicStatus
from capstone.topics.exceptions import TopicNotFoundError, TopicTitleConflictError
from capstone.topics.ledger import record_transition
from capstone.topics.locks import TopicLockRegistry, get_topic_locks
from capstone.topics.schemas import (
    CreateTopicRequest,
    PeriodBatchResult,
    PhaseHistoryResponse,
    TopicResponse,
)
from capstone.topics.state_machine import check_not_already_in, validate_transition

logger = get_logger(__name__)


class TopicLifecycleService:
    """Moves topics through their lifecycle and keeps the phase history."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: TopicLockRegistry | None = None,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.locks = locks or get_topic_locks()
        self.settings = get_topic_settings()
        self.students = StudentRegistrationService(self.session_factory, self.locks)
        self.lecturers = LecturerRegistrationService(self.session_factory, self.locks)

    def _unit_of_work(self, operation: str) -> UnitOfWork:
        return UnitOfWork(
            self.session_factory,
            timeout=self.settings.storage_timeout_seconds,
            operation=operation,
        )

    # ==========================================
    # CRUD
    # ==========================================

    async def create_topic(self, lecturer_id: UUID, request: CreateTopicRequest) -> TopicResponse:
        """Create a draft topic owned by ``lecturer_id``.

        The creator becomes main supervisor. Co-supervisors and students
        listed in the request are attached in the same transaction.
        """
        topic_id = uuid4()
        async with self.locks.hold(topic_id, *request.student_ids):
            async with self._unit_of_work("create_topic") as uow:
                if await uow.topics.title_exists(request.title):
                    raise TopicTitleConflictError(request.title)

                topic = await uow.topics.create(
                    id=topic_id,
                    title=request.title,
                    description=request.description,
                    type=request.type.value,
                    created_by=lecturer_id,
                    max_students=request.max_students,
                    allow_manual_approval=request.allow_manual_approval,
                    current_status=TopicStatus.DRAFT.value,
                    current_phase=PeriodPhase.EMPTY.value,
                )
                await self.lecturers.add_lecturer(uow, topic, lecturer_id, LecturerRole.MAIN)
                for co_supervisor_id in request.co_supervisor_ids:
                    await self.lecturers.add_lecturer(
                        uow, topic, co_supervisor_id, LecturerRole.CO_SUPERVISOR
                    )
                for student_id in request.student_ids:
                    await self.students.admit_student(
                        uow, topic, student_id, ActorRole.LECTURER, processed_by=lecturer_id
                    )
                await uow.commit()

        logger.info(
            "topic_created",
            topic_id=str(topic.id),
            lecturer_id=str(lecturer_id),
            type=topic.type,
            max_students=topic.max_students,
            student_count=len(request.student_ids),
        )
        return TopicResponse.model_validate(topic)

    async def get_topic(self, topic_id: UUID) -> TopicResponse:
        async with self._unit_of_work("get_topic") as uow:
            topic = await uow.topics.get_by_id(topic_id)
            if not topic:
                raise TopicNotFoundError(str(topic_id))
            return TopicResponse.model_validate(topic)

    async def delete_topic(self, topic_id: UUID, actor_id: UUID) -> dict[str, Any]:
        """Soft-delete a topic and release everything attached to it."""
        async with self.locks.hold(topic_id):
            async with self._unit_of_work("delete_topic") as uow:
                topic = await uow.topics.get_for_update(topic_id)
                if not topic:
                    raise TopicNotFoundError(str(topic_id))

                removed_lecturers = await self.lecturers.remove_lecturers(uow, [topic_id])
                withdrawn = await self._withdraw_registrations(
                    uow, topic_id, [s.value for s in ACTIVE_STUDENT_STATUSES], actor_id
                )
                await uow.topics.soft_delete(topic)
                await uow.commit()

        logger.info(
            "topic_deleted",
            topic_id=str(topic_id),
            actor_id=str(actor_id),
            removed_lecturers=removed_lecturers,
            withdrawn_registrations=withdrawn,
        )
        return {"message": "Topic deleted successfully"}

    # ==========================================
    # TRANSITIONS
    # ==========================================

    async def transfer(
        self,
        topic_id: UUID,
        new_status: TopicStatus | str,
        actor_id: UUID | str,
        note: str | None = None,
        period_id: UUID | None = None,
    ) -> TopicResponse:
        """Move a topic to ``new_status`` along a legal edge.

        Re-entering review returns the unchanged topic. Any other request for
        the status the topic already holds, or for an edge not on the graph,
        raises InvalidTransitionError and writes nothing.
        """
        new_status = TopicStatus(new_status)
        async with self.locks.hold(topic_id):
            async with self._unit_of_work("transfer_topic") as uow:
                topic = await uow.topics.get_for_update(topic_id)
                if not topic:
                    raise TopicNotFoundError(str(topic_id))
                previous = topic.current_status
                changed = await self._apply_transfer(
                    uow, topic, new_status, str(actor_id), note=note, period_id=period_id
                )
                await uow.commit()

        if changed:
            logger.info(
                "topic_transferred",
                topic_id=str(topic_id),
                from_status=previous,
                to_status=new_status.value,
                actor_id=str(actor_id),
                period_id=str(period_id) if period_id else None,
            )
        return TopicResponse.model_validate(topic)

    async def submit_to_period(
        self,
        topic_id: UUID,
        actor_id: UUID,
        period_id: UUID,
        note: str | None = None,
    ) -> TopicResponse:
        """Submit a draft topic into a registration period."""
        return await self.transfer(
            topic_id, TopicStatus.SUBMITTED, actor_id, note=note, period_id=period_id
        )

    async def phase_history(self, topic_id: UUID) -> list[PhaseHistoryResponse]:
        """Ledger entries of a topic, oldest first."""
        async with self._unit_of_work("phase_history") as uow:
            topic = await uow.topics.get_by_id(topic_id)
            if not topic:
                raise TopicNotFoundError(str(topic_id))
            entries = await uow.phase_histories.list_by_topic(topic_id)
            return [PhaseHistoryResponse.model_validate(e) for e in entries]

    # ==========================================
    # PERIOD BATCHES
    # ==========================================

    async def open_registration(self, period_id: UUID, actor_id: UUID) -> int:
        """Open registration for every approved topic submitted to the period.

        Topics that already hold admitted students land directly in the
        matching occupancy status. Returns the number of topics opened.
        """
        async with self._unit_of_work("list_period_topics") as uow:
            topic_ids = await uow.topics.list_ids_in_period(
                period_id, PeriodPhase.SUBMIT_TOPIC.value, [TopicStatus.APPROVED.value]
            )

        opened = 0
        for topic_id in topic_ids:
            async with self.locks.hold(topic_id):
                async with self._unit_of_work("open_registration") as uow:
                    topic = await uow.topics.get_for_update(topic_id)
                    if not topic or topic.current_status != TopicStatus.APPROVED.value:
                        continue
                    await self._apply_transfer(
                        uow,
                        topic,
                        TopicStatus.PENDING_REGISTRATION,
                        str(actor_id),
                        note="Registration opened",
                        phase=PeriodPhase.OPEN_REGISTRATION,
                    )
                    approved = await CapacityOracle(uow.student_registrations).approved_count(
                        topic.id
                    )
                    derived = status_for_occupancy(approved, topic.max_students)
                    if derived != TopicStatus.PENDING_REGISTRATION:
                        await record_transition(
                            uow,
                            topic,
                            derived,
                            actor=self.settings.system_actor,
                            note=f"Automatic: {approved}/{topic.max_students} seats taken at opening",
                        )
                    await uow.commit()
            opened += 1

        logger.info("registration_opened", period_id=str(period_id), topics=opened)
        return opened

    async def advance_to_execution(self, period_id: UUID, actor_id: UUID) -> PeriodBatchResult:
        """Close registration for a period.

        Topics with admitted students start execution. Topics nobody
        registered for are reset to draft and their pending registrations
        are withdrawn.
        """
        async with self._unit_of_work("list_period_topics") as uow:
            registered_ids = await uow.topics.list_ids_in_period(
                period_id,
                PeriodPhase.OPEN_REGISTRATION.value,
                [TopicStatus.REGISTERED.value, TopicStatus.FULL.value],
            )
            pending_ids = await uow.topics.list_ids_in_period(
                period_id,
                PeriodPhase.OPEN_REGISTRATION.value,
                [TopicStatus.PENDING_REGISTRATION.value],
            )

        result = PeriodBatchResult()
        for topic_id in registered_ids:
            if await self._advance_one(
                topic_id,
                TopicStatus.IN_PROGRESS,
                actor_id,
                expected=(TopicStatus.REGISTERED, TopicStatus.FULL),
                note="Execution phase started",
                phase=PeriodPhase.EXECUTION,
            ):
                result.registered_topics += 1

        for topic_id in pending_ids:
            if await self._advance_one(
                topic_id,
                TopicStatus.DRAFT,
                actor_id,
                expected=(TopicStatus.PENDING_REGISTRATION,),
                note="No students registered before execution",
            ):
                result.cleaned_up_topics += 1

        logger.info(
            "execution_phase_started",
            period_id=str(period_id),
            registered_topics=result.registered_topics,
            cleaned_up_topics=result.cleaned_up_topics,
        )
        return result

    # ==========================================
    # HELPERS
    # ==========================================

    async def _advance_one(
        self,
        topic_id: UUID,
        new_status: TopicStatus,
        actor_id: UUID,
        expected: tuple[TopicStatus, ...],
        note: str,
        phase: PeriodPhase | None = None,
    ) -> bool:
        async with self.locks.hold(topic_id):
            async with self._unit_of_work("advance_to_execution") as uow:
                topic = await uow.topics.get_for_update(topic_id)
                if not topic or topic.current_status not in {s.value for s in expected}:
                    return False
                await self._apply_transfer(
                    uow, topic, new_status, str(actor_id), note=note, phase=phase
                )
                if new_status == TopicStatus.DRAFT:
                    await self._withdraw_registrations(
                        uow, topic_id, [StudentRegistrationStatus.PENDING.value], actor_id
                    )
                await uow.commit()
        return True

    async def _apply_transfer(
        self,
        uow: UnitOfWork,
        topic: Topic,
        new_status: TopicStatus,
        actor: str,
        note: str | None = None,
        period_id: UUID | None = None,
        phase: PeriodPhase | None = None,
    ) -> bool:
        """Validate and record one transition on a locked topic.

        Returns False for the silent re-review no-op.
        """
        if not check_not_already_in(topic.current_status, new_status):
            logger.info(
                "topic_transfer_noop",
                topic_id=str(topic.id),
                status=new_status.value,
                actor=actor,
            )
            return False
        validate_transition(topic.current_status, new_status)

        if period_id is not None:
            phase = PeriodPhase.SUBMIT_TOPIC
        await record_transition(
            uow,
            topic,
            new_status,
            actor=actor,
            note=note,
            phase_name=phase.value if phase else None,
        )
        if period_id is not None:
            topic.period_id = period_id
        if phase is not None:
            topic.current_phase = phase.value
        if new_status == TopicStatus.DRAFT:
            topic.period_id = None
            topic.current_phase = PeriodPhase.EMPTY.value
        await uow.topics.touch(topic)
        return True

    @staticmethod
    async def _withdraw_registrations(
        uow: UnitOfWork,
        topic_id: UUID,
        statuses: list[str],
        actor_id: UUID,
    ) -> int:
        registrations = await uow.student_registrations.list_by_topic(topic_id, statuses)
        for registration in registrations:
            registration.status = StudentRegistrationStatus.WITHDRAWN.value
            registration.processed_by = actor_id
            await uow.student_registrations.save(registration)
        return len(registrations)
