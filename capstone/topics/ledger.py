"""Phase history ledger: the single place a topic's status is written.

Every status change, manual or capacity-driven, goes through
``record_transition`` so that each one appends exactly one entry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from capstone.infrastructure.database.models import PhaseHistory, Topic
from capstone.shared.utils.logging import get_logger
from capstone.topics.enums import TopicStatus

if TYPE_CHECKING:
    from capstone.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


async def record_transition(
    uow: UnitOfWork,
    topic: Topic,
    new_status: TopicStatus,
    actor: str,
    note: str | None = None,
    phase_name: str | None = None,
) -> PhaseHistory:
    """Append a ledger entry and move the topic into ``new_status``.

    The entry is stamped with ``phase_name`` when given, otherwise with the
    topic's current phase. No legality check happens here.
    """
    entry = await uow.phase_histories.append(
        topic_id=topic.id,
        phase_name=phase_name or topic.current_phase,
        status=new_status.value,
        actor=actor,
        note=note,
    )
    previous = topic.current_status
    topic.current_status = new_status.value
    await uow.topics.touch(topic)

    logger.info(
        "topic_status_recorded",
        topic_id=str(topic.id),
        from_status=previous,
        to_status=new_status.value,
        phase=entry.phase_name,
        actor=actor,
    )
    return entry
