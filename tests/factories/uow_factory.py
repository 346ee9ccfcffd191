"""Mock unit of work for service unit tests."""

from unittest.mock import AsyncMock, MagicMock

from capstone.infrastructure.database.models import Topic


def make_uow(
    topic: Topic | None = None,
    approved_count: int = 0,
    active_elsewhere: int = 0,
) -> MagicMock:
    """A UnitOfWork stand-in whose repositories return canned answers."""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=False)
    uow.commit = AsyncMock()

    uow.topics = MagicMock()
    uow.topics.get_by_id = AsyncMock(return_value=topic)
    uow.topics.get_for_update = AsyncMock(return_value=topic)
    uow.topics.title_exists = AsyncMock(return_value=False)
    uow.topics.touch = AsyncMock()
    uow.topics.soft_delete = AsyncMock()

    uow.phase_histories = MagicMock()
    uow.phase_histories.append = AsyncMock(return_value=MagicMock(phase_name="open_registration"))
    uow.phase_histories.list_by_topic = AsyncMock(return_value=[])

    registrations = MagicMock()
    registrations.create = AsyncMock(side_effect=lambda **kwargs: MagicMock(**kwargs))
    registrations.get_by_id = AsyncMock(return_value=None)
    registrations.get_active = AsyncMock(return_value=None)
    registrations.has_rejected = AsyncMock(return_value=False)
    registrations.count_approved = AsyncMock(return_value=approved_count)
    registrations.count_active_in_other_topics = AsyncMock(return_value=active_elsewhere)
    registrations.list_by_topic = AsyncMock(return_value=[])
    registrations.list_by_student = AsyncMock(return_value=[])
    registrations.save = AsyncMock(side_effect=lambda registration: registration)
    uow.student_registrations = registrations

    lecturers = MagicMock()
    lecturers.create = AsyncMock(side_effect=lambda **kwargs: MagicMock(**kwargs))
    lecturers.get_active = AsyncMock(return_value=None)
    lecturers.list_active_by_topic = AsyncMock(return_value=[])
    lecturers.soft_delete = AsyncMock()
    uow.lecturer_registrations = lecturers

    return uow
