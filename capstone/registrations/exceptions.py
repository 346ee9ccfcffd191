"""Custom exceptions for registration admission."""

from capstone.shared.exceptions import CapstoneServiceError


class RegistrationNotFoundError(CapstoneServiceError):
    """Raised when a registration does not exist."""

    def __init__(self, identifier: str):
        super().__init__(
            f"Registration '{identifier}' not found",
            "registration_not_found",
        )
        self.identifier = identifier


class RegistrationNotPendingError(CapstoneServiceError):
    """Raised when approving or rejecting a registration that is no longer pending."""

    def __init__(self, registration_id: str, status: str):
        super().__init__(
            f"Registration '{registration_id}' is '{status}', only pending registrations can be processed",
            "registration_not_pending",
        )
        self.registration_id = registration_id
        self.status = status


class AlreadyRegisteredError(CapstoneServiceError):
    """Raised when the user already holds an active registration on the topic."""

    def __init__(self, topic_id: str, user_id: str):
        super().__init__(
            f"User '{user_id}' is already registered for topic '{topic_id}'",
            "already_registered",
        )
        self.topic_id = topic_id
        self.user_id = user_id


class PreviouslyRejectedError(CapstoneServiceError):
    """Raised when a student re-registers for a topic that rejected them."""

    def __init__(self, topic_id: str):
        super().__init__(
            f"Your registration for topic '{topic_id}' was rejected; you cannot register again",
            "previously_rejected",
        )
        self.topic_id = topic_id


class OneActiveRegistrationPerCategoryError(CapstoneServiceError):
    """Raised when a student already holds an active non-research registration."""

    def __init__(self, topic_type: str):
        super().__init__(
            f"Student already holds an active registration on another topic; "
            f"only one {topic_type.replace('_', ' ')} registration is allowed at a time",
            "one_active_registration_per_category",
        )
        self.topic_type = topic_type


class TopicFullError(CapstoneServiceError):
    """Raised when registering for a topic whose status is full."""

    def __init__(self, topic_id: str):
        super().__init__(
            f"Topic '{topic_id}' has reached the maximum number of students",
            "topic_full",
        )
        self.topic_id = topic_id


class SlotFullError(CapstoneServiceError):
    """Raised when admitting a student would exceed the topic capacity."""

    def __init__(self, topic_id: str, max_students: int):
        super().__init__(
            f"All {max_students} seat(s) of topic '{topic_id}' are taken",
            "slot_full",
        )
        self.topic_id = topic_id
        self.max_students = max_students


class LecturerSlotFullError(CapstoneServiceError):
    """Raised when a topic already has its supervisors."""

    def __init__(self, topic_id: str, message: str | None = None):
        super().__init__(
            message or f"Topic '{topic_id}' already has the maximum number of lecturers",
            "lecturer_slot_full",
        )
        self.topic_id = topic_id
