"""Repository layer for student and lecturer registrations."""

from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from capstone.infrastructure.database.models import (
    LecturerRegistration,
    StudentRegistration,
    Topic,
)
from capstone.registrations.enums import (
    ACTIVE_STUDENT_STATUSES,
    LecturerRegistrationStatus,
    StudentRegistrationStatus,
)
from capstone.shared.utils.datetime_utils import utcnow

_ACTIVE = [s.value for s in ACTIVE_STUDENT_STATUSES]


class StudentRegistrationRepository:
    """Repository for student registration operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> StudentRegistration:
        registration = StudentRegistration(**kwargs)
        self.session.add(registration)
        await self.session.flush()
        return registration

    async def get_by_id(self, registration_id: UUID) -> StudentRegistration | None:
        query = select(StudentRegistration).where(
            and_(
                StudentRegistration.id == registration_id,
                StudentRegistration.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_active(self, topic_id: UUID, student_id: UUID) -> StudentRegistration | None:
        """The pending/approved registration of a student on a topic, if any."""
        query = select(StudentRegistration).where(
            and_(
                StudentRegistration.topic_id == topic_id,
                StudentRegistration.student_id == student_id,
                StudentRegistration.status.in_(_ACTIVE),
                StudentRegistration.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def has_rejected(self, topic_id: UUID, student_id: UUID) -> bool:
        query = select(StudentRegistration.id).where(
            and_(
                StudentRegistration.topic_id == topic_id,
                StudentRegistration.student_id == student_id,
                StudentRegistration.status == StudentRegistrationStatus.REJECTED.value,
                StudentRegistration.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.first() is not None

    async def count_approved(self, topic_id: UUID) -> int:
        query = (
            select(func.count())
            .select_from(StudentRegistration)
            .where(
                and_(
                    StudentRegistration.topic_id == topic_id,
                    StudentRegistration.status == StudentRegistrationStatus.APPROVED.value,
                    StudentRegistration.deleted_at.is_(None),
                )
            )
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def count_active_in_other_topics(
        self,
        student_id: UUID,
        exclude_topic_id: UUID,
        exempt_types: list[str],
    ) -> int:
        """Active registrations of a student on other non-exempt, non-deleted topics."""
        query = (
            select(func.count())
            .select_from(StudentRegistration)
            .join(Topic, Topic.id == StudentRegistration.topic_id)
            .where(
                and_(
                    StudentRegistration.student_id == student_id,
                    StudentRegistration.topic_id != exclude_topic_id,
                    StudentRegistration.status.in_(_ACTIVE),
                    StudentRegistration.deleted_at.is_(None),
                    Topic.deleted_at.is_(None),
                    Topic.type.not_in(exempt_types),
                )
            )
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def list_by_topic(
        self,
        topic_id: UUID,
        statuses: list[str] | None = None,
    ) -> list[StudentRegistration]:
        conditions = [
            StudentRegistration.topic_id == topic_id,
            StudentRegistration.deleted_at.is_(None),
        ]
        if statuses:
            conditions.append(StudentRegistration.status.in_(statuses))
        query = (
            select(StudentRegistration)
            .where(and_(*conditions))
            .order_by(StudentRegistration.created_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_by_student(self, student_id: UUID) -> list[StudentRegistration]:
        query = (
            select(StudentRegistration)
            .where(
                and_(
                    StudentRegistration.student_id == student_id,
                    StudentRegistration.deleted_at.is_(None),
                )
            )
            .order_by(StudentRegistration.created_at.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, registration: StudentRegistration) -> StudentRegistration:
        registration.updated_at = utcnow()
        await self.session.flush()
        return registration


class LecturerRegistrationRepository:
    """Repository for lecturer registration operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> LecturerRegistration:
        registration = LecturerRegistration(**kwargs)
        self.session.add(registration)
        await self.session.flush()
        return registration

    async def get_active(self, topic_id: UUID, lecturer_id: UUID) -> LecturerRegistration | None:
        query = select(LecturerRegistration).where(
            and_(
                LecturerRegistration.topic_id == topic_id,
                LecturerRegistration.lecturer_id == lecturer_id,
                LecturerRegistration.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def list_active_by_topic(self, topic_id: UUID) -> list[LecturerRegistration]:
        query = (
            select(LecturerRegistration)
            .where(
                and_(
                    LecturerRegistration.topic_id == topic_id,
                    LecturerRegistration.deleted_at.is_(None),
                )
            )
            .order_by(LecturerRegistration.created_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def soft_delete(self, registration: LecturerRegistration) -> None:
        registration.deleted_at = utcnow()
        registration.status = LecturerRegistrationStatus.CANCELLED.value
        await self.session.flush()
