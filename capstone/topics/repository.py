"""Repository layer for topic and phase history database operations."""

from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from capstone.infrastructure.database.models import PhaseHistory, Topic
from capstone.shared.utils.datetime_utils import utcnow
from capstone.shared.utils.logging import get_logger

logger = get_logger(__name__)


class TopicRepository:
    """Repository for topic database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Topic:
        topic = Topic(**kwargs)
        self.session.add(topic)
        await self.session.flush()
        return topic

    async def get_by_id(self, topic_id: UUID) -> Topic | None:
        """Get a non-deleted topic."""
        query = select(Topic).where(and_(Topic.id == topic_id, Topic.deleted_at.is_(None)))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_for_update(self, topic_id: UUID) -> Topic | None:
        """Get a non-deleted topic and take its row write-lock for this transaction."""
        query = (
            select(Topic)
            .where(and_(Topic.id == topic_id, Topic.deleted_at.is_(None)))
            .with_for_update()
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def title_exists(self, title: str) -> bool:
        query = select(Topic.id).where(and_(Topic.title == title, Topic.deleted_at.is_(None)))
        result = await self.session.execute(query)
        return result.scalar_one_or_none() is not None

    async def list_ids_in_period(
        self,
        period_id: UUID,
        phase: str,
        statuses: list[str],
    ) -> list[UUID]:
        query = (
            select(Topic.id)
            .where(
                and_(
                    Topic.period_id == period_id,
                    Topic.current_phase == phase,
                    Topic.current_status.in_(statuses),
                    Topic.deleted_at.is_(None),
                )
            )
            .order_by(Topic.created_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def touch(self, topic: Topic) -> None:
        """Mark the topic as written so its version is bumped on flush."""
        topic.updated_at = utcnow()
        await self.session.flush()

    async def soft_delete(self, topic: Topic) -> None:
        topic.deleted_at = utcnow()
        await self.touch(topic)


class PhaseHistoryRepository:
    """Append-only access to the phase history ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        topic_id: UUID,
        phase_name: str,
        status: str,
        actor: str,
        note: str | None = None,
    ) -> PhaseHistory:
        entry = PhaseHistory(
            topic_id=topic_id,
            phase_name=phase_name,
            status=status,
            actor=actor,
            note=note,
            timestamp=utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_by_topic(self, topic_id: UUID) -> list[PhaseHistory]:
        """Entries in the order they were appended."""
        query = (
            select(PhaseHistory)
            .where(PhaseHistory.topic_id == topic_id)
            .order_by(PhaseHistory.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
