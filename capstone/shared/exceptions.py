"""Base exception and HTTP mapping for topic and registration services."""

from fastapi import HTTPException, status


class CapstoneServiceError(Exception):
    """Base exception for topic lifecycle and admission errors."""

    def __init__(self, message: str, error_type: str = "capstone_service_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


class StorageTimeoutError(CapstoneServiceError):
    """Raised when a persistence write fails or times out.

    The transaction has been rolled back; the caller may retry.
    """

    def __init__(self, operation: str, detail: str | None = None):
        message = f"Storage operation '{operation}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, "storage_timeout")
        self.operation = operation


STATUS_MAP: dict[str, int] = {
    "topic_not_found": status.HTTP_404_NOT_FOUND,
    "registration_not_found": status.HTTP_404_NOT_FOUND,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "topic_title_conflict": status.HTTP_409_CONFLICT,
    "already_registered": status.HTTP_409_CONFLICT,
    "previously_rejected": status.HTTP_403_FORBIDDEN,
    "one_active_registration_per_category": status.HTTP_409_CONFLICT,
    "slot_full": status.HTTP_409_CONFLICT,
    "topic_full": status.HTTP_409_CONFLICT,
    "lecturer_slot_full": status.HTTP_409_CONFLICT,
    "registration_not_pending": status.HTTP_409_CONFLICT,
    "storage_timeout": status.HTTP_503_SERVICE_UNAVAILABLE,
    "capstone_service_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_http_exception(error: CapstoneServiceError) -> None:
    """Convert a CapstoneServiceError to HTTPException."""
    status_code = STATUS_MAP.get(error.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(
        status_code=status_code,
        detail={
            "type": f"https://api.capstone.local/errors/{error.error_type}",
            "title": error.error_type.replace("_", " ").title(),
            "status": status_code,
            "detail": error.message,
        },
    )
