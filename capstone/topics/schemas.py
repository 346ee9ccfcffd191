"""Pydantic schemas for topic lifecycle requests and responses."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from capstone.shared.schemas.base import BaseSchema
from capstone.shared.utils.datetime_utils import ensure_utc
from capstone.topics.enums import TopicType


class CreateTopicRequest(BaseModel):
    """Request to create a draft topic."""

    title: str = Field(..., min_length=3, max_length=500)
    description: str = Field(default="", max_length=10000)
    type: TopicType = TopicType.THESIS
    max_students: int = Field(default=1, ge=1, le=20)
    allow_manual_approval: bool = False
    co_supervisor_ids: list[UUID] = Field(default_factory=list)
    student_ids: list[UUID] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("title must have at least 3 non-blank characters")
        return v

    @field_validator("co_supervisor_ids")
    @classmethod
    def validate_co_supervisors(cls, v: list[UUID]) -> list[UUID]:
        if len(set(v)) > 1:
            raise ValueError("a topic has at most one co-supervisor")
        return list(dict.fromkeys(v))

    @field_validator("student_ids")
    @classmethod
    def dedupe_students(cls, v: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(v))


class TopicResponse(BaseSchema):
    """Topic snapshot."""

    id: UUID
    title: str
    description: str
    type: str
    created_by: UUID
    max_students: int
    allow_manual_approval: bool
    current_status: str
    current_phase: str
    period_id: UUID | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    normalize_timestamps = field_validator("created_at", "updated_at")(ensure_utc)


class PhaseHistoryResponse(BaseSchema):
    """One ledger entry."""

    id: int
    topic_id: UUID
    phase_name: str
    status: str
    actor: str
    note: str | None = None
    timestamp: datetime

    normalize_timestamp = field_validator("timestamp")(ensure_utc)


class PeriodBatchResult(BaseModel):
    """Outcome of moving a period's topics into the execution phase."""

    registered_topics: int = 0
    cleaned_up_topics: int = 0
