"""State machine for the topic lifecycle.

Forward path:

    draft -> submitted -> under_review -> approved -> pending_registration
          -> registered | full -> in_progress -> awaiting_evaluation
          -> assigned_defense -> graded -> archived

Send-back edges: rejected -> draft, submitted -> draft, paused <-> in_progress,
delayed -> in_progress. Capacity edges (full -> registered,
registered -> pending_registration, ...) are applied by the admission
controller without going through ``validate_transition``.
"""

from __future__ import annotations

from enum import Enum

from capstone.topics.enums import TopicStatus
from capstone.topics.exceptions import InvalidTransitionError

# Map of current_status -> list of (target_status, trigger_reason)
VALID_TRANSITIONS: dict[TopicStatus, list[tuple[TopicStatus, str]]] = {
    TopicStatus.DRAFT: [
        (TopicStatus.SUBMITTED, "lecturer_submitted"),
    ],
    TopicStatus.SUBMITTED: [
        (TopicStatus.UNDER_REVIEW, "board_review_started"),
        (TopicStatus.APPROVED, "board_approved"),
        (TopicStatus.REJECTED, "board_rejected"),
        (TopicStatus.DRAFT, "lecturer_withdrew_submission"),
    ],
    TopicStatus.UNDER_REVIEW: [
        (TopicStatus.APPROVED, "board_approved"),
        (TopicStatus.REJECTED, "board_rejected"),
    ],
    TopicStatus.APPROVED: [
        (TopicStatus.PENDING_REGISTRATION, "registration_opened"),
        (TopicStatus.IN_PROGRESS, "execution_started"),
    ],
    TopicStatus.REJECTED: [
        (TopicStatus.DRAFT, "returned_for_resubmission"),
    ],
    TopicStatus.PENDING_REGISTRATION: [
        (TopicStatus.REGISTERED, "first_student_admitted"),
        (TopicStatus.FULL, "last_seat_filled"),
        (TopicStatus.DRAFT, "no_registrations_at_close"),
    ],
    TopicStatus.REGISTERED: [
        (TopicStatus.FULL, "last_seat_filled"),
        (TopicStatus.PENDING_REGISTRATION, "last_student_left"),
        (TopicStatus.IN_PROGRESS, "execution_started"),
        (TopicStatus.ASSIGNED_DEFENSE, "defense_assigned"),
    ],
    TopicStatus.FULL: [
        (TopicStatus.REGISTERED, "seat_released"),
        (TopicStatus.IN_PROGRESS, "execution_started"),
        (TopicStatus.ASSIGNED_DEFENSE, "defense_assigned"),
    ],
    TopicStatus.IN_PROGRESS: [
        (TopicStatus.PAUSED, "paused"),
        (TopicStatus.DELAYED, "delayed"),
        (TopicStatus.AWAITING_EVALUATION, "submitted_for_evaluation"),
    ],
    TopicStatus.PAUSED: [
        (TopicStatus.IN_PROGRESS, "resumed"),
    ],
    TopicStatus.DELAYED: [
        (TopicStatus.IN_PROGRESS, "resumed"),
    ],
    TopicStatus.AWAITING_EVALUATION: [
        (TopicStatus.ASSIGNED_DEFENSE, "defense_assigned"),
        (TopicStatus.GRADED, "graded_without_defense"),
    ],
    TopicStatus.ASSIGNED_DEFENSE: [
        (TopicStatus.GRADED, "defense_graded"),
    ],
    TopicStatus.GRADED: [
        (TopicStatus.ARCHIVED, "board_archived"),
    ],
    TopicStatus.ARCHIVED: [],  # terminal
}

# Re-entering review is a silent no-op instead of an error.
IDEMPOTENT_STATUSES: frozenset[TopicStatus] = frozenset({TopicStatus.UNDER_REVIEW})


class TransitionRejection(Enum):
    """Reasons a requested transition is refused, each with its own message."""

    ALREADY_DRAFT = ("already_draft", "Topic is already a draft.")
    ALREADY_SUBMITTED = ("already_submitted", "You have already submitted this topic.")
    ALREADY_APPROVED = (
        "already_approved",
        "Topic has already been approved and is waiting for the registration phase.",
    )
    ALREADY_REJECTED = ("already_rejected", "Topic was already marked as rejected.")
    ALREADY_PENDING_REGISTRATION = (
        "already_pending_registration",
        "Topic is already open for registration.",
    )
    ALREADY_REGISTERED = ("already_registered", "Topic already has registered students.")
    ALREADY_FULL = ("already_full", "Topic has already reached its maximum number of students.")
    ALREADY_IN_PROGRESS = ("already_in_progress", "Topic is already in progress.")
    ALREADY_PAUSED = ("already_paused", "Topic was already paused.")
    ALREADY_DELAYED = ("already_delayed", "Topic was already marked as delayed.")
    ALREADY_AWAITING_EVALUATION = (
        "already_awaiting_evaluation",
        "Topic is already awaiting evaluation.",
    )
    ALREADY_ASSIGNED_DEFENSE = (
        "already_assigned_defense",
        "Topic is already assigned to a defense council.",
    )
    ALREADY_GRADED = ("already_graded", "Topic was already graded.")
    ALREADY_ARCHIVED = ("already_archived", "Topic was already archived.")
    ILLEGAL_EDGE = (
        "illegal_edge",
        "Cannot transfer topic from '{current}' to '{target}'.",
    )

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.template = message

    def render(self, current: str, target: str) -> str:
        return self.template.format(current=current, target=target)


ALREADY_IN_STATE: dict[TopicStatus, TransitionRejection] = {
    TopicStatus.DRAFT: TransitionRejection.ALREADY_DRAFT,
    TopicStatus.SUBMITTED: TransitionRejection.ALREADY_SUBMITTED,
    TopicStatus.APPROVED: TransitionRejection.ALREADY_APPROVED,
    TopicStatus.REJECTED: TransitionRejection.ALREADY_REJECTED,
    TopicStatus.PENDING_REGISTRATION: TransitionRejection.ALREADY_PENDING_REGISTRATION,
    TopicStatus.REGISTERED: TransitionRejection.ALREADY_REGISTERED,
    TopicStatus.FULL: TransitionRejection.ALREADY_FULL,
    TopicStatus.IN_PROGRESS: TransitionRejection.ALREADY_IN_PROGRESS,
    TopicStatus.PAUSED: TransitionRejection.ALREADY_PAUSED,
    TopicStatus.DELAYED: TransitionRejection.ALREADY_DELAYED,
    TopicStatus.AWAITING_EVALUATION: TransitionRejection.ALREADY_AWAITING_EVALUATION,
    TopicStatus.ASSIGNED_DEFENSE: TransitionRejection.ALREADY_ASSIGNED_DEFENSE,
    TopicStatus.GRADED: TransitionRejection.ALREADY_GRADED,
    TopicStatus.ARCHIVED: TransitionRejection.ALREADY_ARCHIVED,
}


def _coerce(status: TopicStatus | str) -> TopicStatus | None:
    try:
        return TopicStatus(status)
    except ValueError:
        return None


def can_transition(current: TopicStatus | str, target: TopicStatus | str) -> bool:
    """Check whether a transition from current to target is on the legal graph."""
    current_status = _coerce(current)
    target_status = _coerce(target)
    if current_status is None or target_status is None:
        return False
    allowed = VALID_TRANSITIONS.get(current_status, [])
    return any(t == target_status for t, _ in allowed)


def get_valid_targets(current: TopicStatus | str) -> list[TopicStatus]:
    """Return all statuses reachable from the current status."""
    current_status = _coerce(current)
    if current_status is None:
        return []
    return [t for t, _ in VALID_TRANSITIONS.get(current_status, [])]


def check_not_already_in(current: TopicStatus | str, target: TopicStatus | str) -> bool:
    """Handle a request to move a topic into the status it already holds.

    Returns True when the transition should proceed, False when it is a
    silent no-op (re-entering review). Raises InvalidTransitionError with a
    state-specific message for every other identical transition.
    """
    target_status = TopicStatus(target)
    if TopicStatus(current) != target_status:
        return True
    if target_status in IDEMPOTENT_STATUSES:
        return False
    raise InvalidTransitionError(
        current=target_status.value,
        target=target_status.value,
        reason=ALREADY_IN_STATE[target_status],
    )


def validate_transition(current: TopicStatus | str, target: TopicStatus | str) -> None:
    """Validate a manual transition, raising InvalidTransitionError if illegal."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            current=str(getattr(current, "value", current)),
            target=str(getattr(target, "value", target)),
            reason=TransitionRejection.ILLEGAL_EDGE,
        )
