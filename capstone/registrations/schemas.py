"""Pydantic schemas for registration responses."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from capstone.shared.schemas.base import BaseSchema


class StudentRegistrationResponse(BaseSchema):
    """Student registration snapshot."""

    id: UUID
    topic_id: UUID
    student_id: UUID
    status: str
    student_note: str | None = None
    lecturer_response: str | None = None
    rejection_reason_type: str | None = None
    processed_by: UUID | None = None
    student_role: str | None = None
    created_at: datetime
    updated_at: datetime


class LecturerRegistrationResponse(BaseSchema):
    """Lecturer registration snapshot."""

    id: UUID
    topic_id: UUID
    lecturer_id: UUID
    role: str
    status: str
    created_at: datetime


class TopicRegistrationsResponse(BaseModel):
    """Pending and approved students of one topic."""

    topic_id: UUID
    approved: list[StudentRegistrationResponse] = Field(default_factory=list)
    pending: list[StudentRegistrationResponse] = Field(default_factory=list)
