"""Enumerations for the topic lifecycle."""

from enum import Enum


class TopicStatus(str, Enum):
    """Lifecycle states of a topic."""

    # Submission phase
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    # Open registration phase
    PENDING_REGISTRATION = "pending_registration"
    REGISTERED = "registered"
    FULL = "full"

    # Execution phase
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    DELAYED = "delayed"
    AWAITING_EVALUATION = "awaiting_evaluation"

    # Completion phase
    ASSIGNED_DEFENSE = "assigned_defense"
    GRADED = "graded"
    ARCHIVED = "archived"


class PeriodPhase(str, Enum):
    """Named stages of an academic period."""

    EMPTY = "empty"
    SUBMIT_TOPIC = "submit_topic"
    OPEN_REGISTRATION = "open_registration"
    EXECUTION = "execution"
    COMPLETION = "completion"


class TopicType(str, Enum):
    """Topic categories.

    Scientific research topics are exempt from the one-active-registration rule.
    """

    THESIS = "thesis"
    CAPSTONE_PROJECT = "capstone_project"
    SCIENTIFIC_RESEARCH = "scientific_research"
