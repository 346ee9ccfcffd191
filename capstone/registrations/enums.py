"""Enumerations for student and lecturer registrations."""

from enum import Enum


class ActorRole(str, Enum):
    """Role of the user performing a registration call."""

    STUDENT = "student"
    LECTURER = "lecturer"
    FACULTY_BOARD = "faculty_board"


class StudentRegistrationStatus(str, Enum):
    """Per (topic, student) registration states.

    pending -> approved | rejected | cancelled (by student) | withdrawn (by lecturer)
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    WITHDRAWN = "withdrawn"


ACTIVE_STUDENT_STATUSES: tuple[StudentRegistrationStatus, ...] = (
    StudentRegistrationStatus.PENDING,
    StudentRegistrationStatus.APPROVED,
)


class StudentRole(str, Enum):
    """Role of an admitted student inside the topic team."""

    LEADER = "leader"
    MEMBER = "member"


class RejectionReasonType(str, Enum):
    """Reason a lecturer gives when rejecting a registration."""

    TOPIC_FULL = "topic_full"
    NOT_SUITABLE = "not_suitable"
    MISSING_REQUIREMENTS = "missing_requirements"
    OTHER = "other"


class LecturerRole(str, Enum):
    """Supervisor slot a lecturer occupies on a topic."""

    MAIN = "main"
    CO_SUPERVISOR = "co_supervisor"


class LecturerRegistrationStatus(str, Enum):
    """Lecturer registrations are approved on creation."""

    APPROVED = "approved"
    CANCELLED = "cancelled"
