"""Service layer for registration admission control.

Every operation that changes seat occupancy runs as one transaction under
the topic lock: the approved count is re-read, compared with the capacity,
and the registration plus any capacity-driven topic transition are written
together or not at all.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capstone.infrastructure.database.models import (
    LecturerRegistration,
    StudentRegistration,
    Topic,
)
from capstone.infrastructure.database.session import get_session_factory
from capstone.infrastructure.database.unit_of_work import UnitOfWork
from capstone.registrations.capacity import (
    CapacityOracle,
    status_after_admission,
    status_after_release,
)
from capstone.registrations.config import get_registration_settings
from capstone.registrations.enums import (
    ActorRole,
    LecturerRole,
    LecturerRegistrationStatus,
    RejectionReasonType,
    StudentRegistrationStatus,
    StudentRole,
)
from capstone.registrations.exceptions import (
    AlreadyRegisteredError,
    LecturerSlotFullError,
    OneActiveRegistrationPerCategoryError,
    PreviouslyRejectedError,
    RegistrationNotFoundError,
    RegistrationNotPendingError,
    SlotFullError,
    TopicFullError,
)
from capstone.registrations.schemas import (
    LecturerRegistrationResponse,
    StudentRegistrationResponse,
    TopicRegistrationsResponse,
)
from capstone.shared.utils.logging import get_logger
from capstone.topics.config import get_topic_settings
from capstone.topics.enums import TopicStatus
from capstone.topics.exceptions import TopicNotFoundError
from capstone.topics.ledger import record_transition
from capstone.topics.locks import TopicLockRegistry, get_topic_locks
from capstone.topics.schemas import TopicResponse

logger = get_logger(__name__)


class _TopicScopedService:
    """Shared plumbing: session factory, topic locks, unit of work."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: TopicLockRegistry | None = None,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.locks = locks or get_topic_locks()
        self.settings = get_registration_settings()
        self.topic_settings = get_topic_settings()

    def _unit_of_work(self, operation: str) -> UnitOfWork:
        return UnitOfWork(
            self.session_factory,
            timeout=self.topic_settings.storage_timeout_seconds,
            operation=operation,
        )

    @staticmethod
    async def _get_topic_for_update(uow: UnitOfWork, topic_id: UUID) -> Topic:
        topic = await uow.topics.get_for_update(topic_id)
        if not topic:
            raise TopicNotFoundError(str(topic_id))
        return topic

    @staticmethod
    async def _get_topic(uow: UnitOfWork, topic_id: UUID) -> Topic:
        topic = await uow.topics.get_by_id(topic_id)
        if not topic:
            raise TopicNotFoundError(str(topic_id))
        return topic


class StudentRegistrationService(_TopicScopedService):
    """Student admission: register, approve, reject, cancel, unassign."""

    # ==========================================
    # ADMISSION
    # ==========================================

    async def register(
        self,
        actor_role: ActorRole | str,
        user_id: UUID,
        topic_id: UUID,
        student_note: str | None = None,
    ) -> TopicResponse:
        """Register a student on a topic, either by the student or by a lecturer."""
        actor_role = ActorRole(actor_role)
        async with self.locks.hold(topic_id, user_id):
            async with self._unit_of_work("register_student") as uow:
                topic = await self._get_topic_for_update(uow, topic_id)
                registration = await self.admit_student(
                    uow, topic, user_id, actor_role, student_note=student_note
                )
                await uow.commit()

        logger.info(
            "student_registered",
            topic_id=str(topic_id),
            student_id=str(user_id),
            actor_role=actor_role.value,
            registration_status=registration.status,
        )
        return TopicResponse.model_validate(topic)

    async def assign_students(
        self,
        topic_id: UUID,
        student_ids: list[UUID],
        actor_id: UUID,
    ) -> TopicResponse:
        """Lecturer bulk assignment: every student is admitted directly or none is."""
        async with self.locks.hold(topic_id, *student_ids):
            async with self._unit_of_work("assign_students") as uow:
                topic = await self._get_topic_for_update(uow, topic_id)
                for student_id in dict.fromkeys(student_ids):
                    await self.admit_student(
                        uow, topic, student_id, ActorRole.LECTURER, processed_by=actor_id
                    )
                await uow.commit()

        logger.info(
            "students_assigned",
            topic_id=str(topic_id),
            actor_id=str(actor_id),
            count=len(student_ids),
        )
        return TopicResponse.model_validate(topic)

    async def admit_student(
        self,
        uow: UnitOfWork,
        topic: Topic,
        student_id: UUID,
        actor_role: ActorRole,
        student_note: str | None = None,
        processed_by: UUID | None = None,
    ) -> StudentRegistration:
        """Create a registration inside the caller's locked transaction."""
        registrations = uow.student_registrations
        if actor_role != ActorRole.LECTURER and await registrations.has_rejected(topic.id, student_id):
            raise PreviouslyRejectedError(str(topic.id))

        if topic.current_status == TopicStatus.FULL.value:
            raise TopicFullError(str(topic.id))

        if await registrations.get_active(topic.id, student_id):
            raise AlreadyRegisteredError(str(topic.id), str(student_id))

        exempt = self._is_exempt(topic)
        if not exempt:
            await self._check_one_active(uow, topic, student_id)

        auto_approve = actor_role == ActorRole.LECTURER or (
            not exempt and not topic.allow_manual_approval
        )
        if not auto_approve:
            registration = await registrations.create(
                topic_id=topic.id,
                student_id=student_id,
                status=StudentRegistrationStatus.PENDING.value,
                student_note=student_note,
            )
            await uow.topics.touch(topic)
            return registration

        approved_before = await CapacityOracle(registrations).approved_count(topic.id)
        if approved_before >= topic.max_students:
            raise SlotFullError(str(topic.id), topic.max_students)

        registration = await registrations.create(
            topic_id=topic.id,
            student_id=student_id,
            status=StudentRegistrationStatus.APPROVED.value,
            student_note=student_note,
            processed_by=processed_by,
        )
        await self._apply_admission(uow, topic, approved_before, student_id)
        return registration

    # ==========================================
    # LECTURER DECISIONS
    # ==========================================

    async def approve(
        self,
        registration_id: UUID,
        actor_id: UUID,
        student_role: StudentRole | str = StudentRole.MEMBER,
        lecturer_response: str | None = None,
    ) -> StudentRegistrationResponse:
        """Approve a pending registration, consuming one seat."""
        student_role = StudentRole(student_role)
        topic_id, student_id = await self._locate(registration_id)

        async with self.locks.hold(topic_id, student_id):
            async with self._unit_of_work("approve_registration") as uow:
                registration = await self._get_pending(uow, registration_id)
                topic = await self._get_topic_for_update(uow, registration.topic_id)

                approved_before = await CapacityOracle(uow.student_registrations).approved_count(
                    topic.id
                )
                if approved_before >= topic.max_students:
                    raise SlotFullError(str(topic.id), topic.max_students)

                if not self._is_exempt(topic):
                    await self._check_one_active(uow, topic, registration.student_id)

                registration.status = StudentRegistrationStatus.APPROVED.value
                registration.processed_by = actor_id
                registration.lecturer_response = lecturer_response
                registration.student_role = student_role.value
                await uow.student_registrations.save(registration)

                await self._apply_admission(uow, topic, approved_before, registration.student_id)
                await uow.commit()

        logger.info(
            "registration_approved",
            registration_id=str(registration_id),
            topic_id=str(topic_id),
            actor_id=str(actor_id),
            seats_taken=approved_before + 1,
        )
        return StudentRegistrationResponse.model_validate(registration)

    async def reject(
        self,
        registration_id: UUID,
        actor_id: UUID,
        reason_type: RejectionReasonType | str,
        lecturer_response: str | None = None,
    ) -> StudentRegistrationResponse:
        """Reject a pending registration. The student cannot register for this topic again."""
        reason_type = RejectionReasonType(reason_type)
        topic_id, student_id = await self._locate(registration_id)

        async with self.locks.hold(topic_id, student_id):
            async with self._unit_of_work("reject_registration") as uow:
                registration = await self._get_pending(uow, registration_id)
                topic = await self._get_topic_for_update(uow, registration.topic_id)

                registration.status = StudentRegistrationStatus.REJECTED.value
                registration.rejection_reason_type = reason_type.value
                registration.lecturer_response = lecturer_response
                registration.processed_by = actor_id
                await uow.student_registrations.save(registration)
                await uow.topics.touch(topic)
                await uow.commit()

        logger.info(
            "registration_rejected",
            registration_id=str(registration_id),
            topic_id=str(topic_id),
            reason_type=reason_type.value,
        )
        return StudentRegistrationResponse.model_validate(registration)

    # ==========================================
    # RELEASE
    # ==========================================

    async def cancel(self, topic_id: UUID, user_id: UUID) -> dict[str, Any]:
        """Student cancels their active registration on a topic."""
        async with self.locks.hold(topic_id, user_id):
            async with self._unit_of_work("cancel_registration") as uow:
                topic = await self._get_topic_for_update(uow, topic_id)
                registration = await uow.student_registrations.get_active(topic_id, user_id)
                if not registration:
                    raise RegistrationNotFoundError(f"topic={topic_id} student={user_id}")
                await self._release(uow, topic, registration, StudentRegistrationStatus.CANCELLED)
                await uow.commit()

        logger.info("registration_cancelled", topic_id=str(topic_id), student_id=str(user_id))
        return {"message": "Registration cancelled successfully"}

    async def unassign(
        self,
        actor_id: UUID,
        topic_id: UUID,
        student_id: UUID,
    ) -> StudentRegistrationResponse:
        """Lecturer removes a student from a topic."""
        async with self.locks.hold(topic_id, student_id):
            async with self._unit_of_work("unassign_student") as uow:
                topic = await self._get_topic_for_update(uow, topic_id)
                registration = await uow.student_registrations.get_active(topic_id, student_id)
                if not registration:
                    raise RegistrationNotFoundError(f"topic={topic_id} student={student_id}")
                await self._release(
                    uow,
                    topic,
                    registration,
                    StudentRegistrationStatus.WITHDRAWN,
                    processed_by=actor_id,
                )
                await uow.commit()

        logger.info(
            "student_unassigned",
            topic_id=str(topic_id),
            student_id=str(student_id),
            actor_id=str(actor_id),
        )
        return StudentRegistrationResponse.model_validate(registration)

    # ==========================================
    # QUERIES
    # ==========================================

    async def approved_count(self, topic_id: UUID) -> int:
        async with self._unit_of_work("approved_count") as uow:
            await self._get_topic(uow, topic_id)
            return await CapacityOracle(uow.student_registrations).approved_count(topic_id)

    async def list_topic_registrations(self, topic_id: UUID) -> TopicRegistrationsResponse:
        async with self._unit_of_work("list_topic_registrations") as uow:
            await self._get_topic(uow, topic_id)
            approved = await uow.student_registrations.list_by_topic(
                topic_id, [StudentRegistrationStatus.APPROVED.value]
            )
            pending = await uow.student_registrations.list_by_topic(
                topic_id, [StudentRegistrationStatus.PENDING.value]
            )
            return TopicRegistrationsResponse(
                topic_id=topic_id,
                approved=[StudentRegistrationResponse.model_validate(r) for r in approved],
                pending=[StudentRegistrationResponse.model_validate(r) for r in pending],
            )

    async def student_history(self, student_id: UUID) -> list[StudentRegistrationResponse]:
        async with self._unit_of_work("student_history") as uow:
            registrations = await uow.student_registrations.list_by_student(student_id)
            return [StudentRegistrationResponse.model_validate(r) for r in registrations]

    # ==========================================
    # HELPERS
    # ==========================================

    def _is_exempt(self, topic: Topic) -> bool:
        return topic.type in self.settings.research_exempt_types

    async def _check_one_active(self, uow: UnitOfWork, topic: Topic, student_id: UUID) -> None:
        others = await uow.student_registrations.count_active_in_other_topics(
            student_id,
            exclude_topic_id=topic.id,
            exempt_types=self.settings.research_exempt_types,
        )
        if others > 0:
            raise OneActiveRegistrationPerCategoryError(topic.type)

    async def _locate(self, registration_id: UUID) -> tuple[UUID, UUID]:
        """Resolve the topic and student of a registration before taking locks."""
        async with self._unit_of_work("locate_registration") as uow:
            registration = await uow.student_registrations.get_by_id(registration_id)
            if not registration:
                raise RegistrationNotFoundError(str(registration_id))
            return registration.topic_id, registration.student_id

    @staticmethod
    async def _get_pending(uow: UnitOfWork, registration_id: UUID) -> StudentRegistration:
        registration = await uow.student_registrations.get_by_id(registration_id)
        if not registration:
            raise RegistrationNotFoundError(str(registration_id))
        if registration.status != StudentRegistrationStatus.PENDING.value:
            raise RegistrationNotPendingError(str(registration_id), registration.status)
        return registration

    async def _apply_admission(
        self,
        uow: UnitOfWork,
        topic: Topic,
        approved_before: int,
        student_id: UUID,
    ) -> None:
        new_status = status_after_admission(
            topic.current_status, approved_before, topic.max_students
        )
        if new_status is None:
            await uow.topics.touch(topic)
            return
        await record_transition(
            uow,
            topic,
            new_status,
            actor=self.topic_settings.system_actor,
            note=(
                f"Automatic: student {student_id} admitted, "
                f"{approved_before + 1}/{topic.max_students} seats taken"
            ),
        )
        logger.info(
            "capacity_transition",
            topic_id=str(topic.id),
            to_status=new_status.value,
            seats_taken=approved_before + 1,
        )

    async def _release(
        self,
        uow: UnitOfWork,
        topic: Topic,
        registration: StudentRegistration,
        new_registration_status: StudentRegistrationStatus,
        processed_by: UUID | None = None,
    ) -> None:
        was_approved = registration.status == StudentRegistrationStatus.APPROVED.value
        approved_before = await CapacityOracle(uow.student_registrations).approved_count(topic.id)

        registration.status = new_registration_status.value
        if processed_by is not None:
            registration.processed_by = processed_by
        await uow.student_registrations.save(registration)

        new_status = status_after_release(topic.current_status, approved_before) if was_approved else None
        if new_status is None:
            await uow.topics.touch(topic)
            return
        await record_transition(
            uow,
            topic,
            new_status,
            actor=self.topic_settings.system_actor,
            note=(
                f"Automatic: student {registration.student_id} {new_registration_status.value}, "
                f"{approved_before - 1}/{topic.max_students} seats taken"
            ),
        )
        logger.info(
            "capacity_transition",
            topic_id=str(topic.id),
            to_status=new_status.value,
            seats_taken=approved_before - 1,
        )


class LecturerRegistrationService(_TopicScopedService):
    """Lecturer supervision slots: at most one main and one co-supervisor."""

    async def register_lecturer(
        self,
        topic_id: UUID,
        lecturer_id: UUID,
        role: LecturerRole | str = LecturerRole.CO_SUPERVISOR,
    ) -> LecturerRegistrationResponse:
        role = LecturerRole(role)
        async with self.locks.hold(topic_id):
            async with self._unit_of_work("register_lecturer") as uow:
                topic = await self._get_topic_for_update(uow, topic_id)
                registration = await self.add_lecturer(uow, topic, lecturer_id, role)
                await uow.commit()

        logger.info(
            "lecturer_registered",
            topic_id=str(topic_id),
            lecturer_id=str(lecturer_id),
            role=role.value,
        )
        return LecturerRegistrationResponse.model_validate(registration)

    async def add_lecturer(
        self,
        uow: UnitOfWork,
        topic: Topic,
        lecturer_id: UUID,
        role: LecturerRole,
    ) -> LecturerRegistration:
        """Create an approved lecturer registration inside the caller's transaction."""
        active = await uow.lecturer_registrations.list_active_by_topic(topic.id)
        if len(active) >= self.settings.max_lecturers_per_topic:
            raise LecturerSlotFullError(str(topic.id))
        if any(r.lecturer_id == lecturer_id for r in active):
            raise AlreadyRegisteredError(str(topic.id), str(lecturer_id))
        if any(r.role == role.value for r in active):
            raise LecturerSlotFullError(
                str(topic.id),
                f"Topic '{topic.id}' already has a {role.value.replace('_', ' ')}",
            )
        return await uow.lecturer_registrations.create(
            topic_id=topic.id,
            lecturer_id=lecturer_id,
            role=role.value,
            status=LecturerRegistrationStatus.APPROVED.value,
        )

    async def cancel_lecturer(self, topic_id: UUID, lecturer_id: UUID) -> dict[str, Any]:
        """Lecturer withdraws from a topic. Topic status is not affected."""
        async with self.locks.hold(topic_id):
            async with self._unit_of_work("cancel_lecturer_registration") as uow:
                await self._get_topic(uow, topic_id)
                registration = await uow.lecturer_registrations.get_active(topic_id, lecturer_id)
                if not registration:
                    raise RegistrationNotFoundError(f"topic={topic_id} lecturer={lecturer_id}")
                await uow.lecturer_registrations.soft_delete(registration)
                await uow.commit()

        logger.info("lecturer_registration_cancelled", topic_id=str(topic_id), lecturer_id=str(lecturer_id))
        return {"message": "Registration cancelled successfully"}

    async def list_lecturers(self, topic_id: UUID) -> list[LecturerRegistrationResponse]:
        async with self._unit_of_work("list_lecturers") as uow:
            await self._get_topic(uow, topic_id)
            registrations = await uow.lecturer_registrations.list_active_by_topic(topic_id)
            return [LecturerRegistrationResponse.model_validate(r) for r in registrations]

    @staticmethod
    async def remove_lecturers(uow: UnitOfWork, topic_ids: list[UUID]) -> int:
        """Force-remove every active lecturer registration of topics being deleted."""
        removed = 0
        for topic_id in topic_ids:
            for registration in await uow.lecturer_registrations.list_active_by_topic(topic_id):
                await uow.lecturer_registrations.soft_delete(registration)
                removed += 1
        return removed
