"""Custom exceptions for the topic lifecycle engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from capstone.shared.exceptions import CapstoneServiceError

if TYPE_CHECKING:
    from capstone.topics.state_machine import TransitionRejection


class TopicNotFoundError(CapstoneServiceError):
    """Raised when a topic does not exist or has been soft-deleted."""

    def __init__(self, topic_id: str):
        super().__init__(
            f"Topic '{topic_id}' not found or has been deleted",
            "topic_not_found",
        )
        self.topic_id = topic_id


class InvalidTransitionError(CapstoneServiceError):
    """Raised when a status transition is refused.

    ``reason`` identifies why: either the topic already holds the requested
    status (one member per status) or the edge is not on the legal graph.
    """

    def __init__(self, current: str, target: str, reason: TransitionRejection):
        super().__init__(reason.render(current, target), "invalid_transition")
        self.current_status = current
        self.target_status = target
        self.reason = reason


class TopicTitleConflictError(CapstoneServiceError):
    """Raised when creating a topic whose title is already taken."""

    def __init__(self, title: str):
        super().__init__(
            f"A topic titled '{title}' already exists",
            "topic_title_conflict",
        )
        self.title = title
