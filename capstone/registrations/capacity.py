"""Capacity oracle: seat occupancy of a topic.

Counts are always read from the database at decision time, inside the
caller's transaction and under the topic lock. Nothing here is cached.
"""

from __future__ import annotations

from uuid import UUID

from capstone.infrastructure.database.models import Topic
from capstone.registrations.repository import StudentRegistrationRepository
from capstone.topics.enums import TopicStatus

# Topic statuses whose value is derived from seat occupancy.
ADMISSION_STATUSES: frozenset[TopicStatus] = frozenset(
    {
        TopicStatus.PENDING_REGISTRATION,
        TopicStatus.REGISTERED,
        TopicStatus.FULL,
    }
)


class CapacityOracle:
    """Answers seat questions for a topic."""

    def __init__(self, registrations: StudentRegistrationRepository):
        self.registrations = registrations

    async def approved_count(self, topic_id: UUID) -> int:
        """Number of approved, non-deleted student registrations."""
        return await self.registrations.count_approved(topic_id)

    async def seats_left(self, topic: Topic) -> int:
        return topic.max_students - await self.approved_count(topic.id)

    async def has_exactly_n_seats_left(self, topic: Topic, n: int) -> bool:
        return await self.seats_left(topic) == n

    async def is_full(self, topic: Topic) -> bool:
        return await self.seats_left(topic) <= 0


def status_after_admission(
    current: TopicStatus | str,
    approved_before: int,
    max_students: int,
) -> TopicStatus | None:
    """Topic status implied by admitting one more student, or None for no change.

    Filling the last seat makes the topic full; the first admission on a
    topic waiting for registrations makes it registered.
    """
    current_status = TopicStatus(current)
    if current_status not in ADMISSION_STATUSES:
        return None
    if approved_before + 1 == max_students:
        return TopicStatus.FULL
    if current_status == TopicStatus.PENDING_REGISTRATION and approved_before == 0:
        return TopicStatus.REGISTERED
    return None


def status_after_release(
    current: TopicStatus | str,
    approved_before: int,
) -> TopicStatus | None:
    """Topic status implied by releasing one admitted seat, or None for no change.

    ``approved_before`` includes the seat being released. A full topic
    becomes registered while someone is still admitted; a topic whose only
    admitted student leaves goes back to waiting for registrations.
    """
    current_status = TopicStatus(current)
    remaining = approved_before - 1
    if current_status == TopicStatus.FULL:
        return TopicStatus.REGISTERED if remaining >= 1 else TopicStatus.PENDING_REGISTRATION
    if current_status == TopicStatus.REGISTERED and approved_before == 1:
        return TopicStatus.PENDING_REGISTRATION
    return None


def status_for_occupancy(approved: int, max_students: int) -> TopicStatus:
    """Admission status matching an occupancy level, used when registration opens."""
    if approved >= max_students:
        return TopicStatus.FULL
    if approved > 0:
        return TopicStatus.REGISTERED
    return TopicStatus.PENDING_REGISTRATION
