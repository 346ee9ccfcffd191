"""SQLAlchemy ORM models for topics, registrations and the phase history ledger."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from capstone.registrations.enums import (
    LecturerRegistrationStatus,
    LecturerRole,
    RejectionReasonType,
    StudentRegistrationStatus,
    StudentRole,
)
from capstone.shared.utils.datetime_utils import utcnow
from capstone.topics.enums import PeriodPhase, TopicStatus, TopicType


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def _one_of(column: str, values: type[Enum], nullable: bool = False) -> str:
    allowed = ",".join(f"'{member.value}'" for member in values)
    clause = f"{column} IN ({allowed})"
    if nullable:
        clause = f"{column} IS NULL OR {clause}"
    return clause


# ===========================================
# TOPICS
# ===========================================


class Topic(Base):
    """A thesis/capstone topic offered for registration.

    ``version`` is the optimistic concurrency token: every write bumps it and
    an UPDATE against a stale version fails.
    """

    __tablename__ = "topics"
    __table_args__ = (
        Index("idx_topics_period_phase", "period_id", "current_phase"),
        Index("idx_topics_status", "current_status"),
        Index(
            "uq_topics_title_active",
            "title",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        CheckConstraint(_one_of("current_status", TopicStatus), name="ck_topic_status"),
        CheckConstraint(_one_of("current_phase", PeriodPhase), name="ck_topic_phase"),
        CheckConstraint(_one_of("type", TopicType), name="ck_topic_type"),
        CheckConstraint("max_students >= 1", name="ck_topic_max_students"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    created_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    max_students: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    allow_manual_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    current_status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=TopicStatus.DRAFT.value
    )
    current_phase: Mapped[str] = mapped_column(
        String(50), nullable=False, default=PeriodPhase.EMPTY.value
    )
    period_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __mapper_args__ = {"version_id_col": version}

    phase_histories: Mapped[list["PhaseHistory"]] = relationship(
        back_populates="topic", order_by="PhaseHistory.id", lazy="raise"
    )
    student_registrations: Mapped[list["StudentRegistration"]] = relationship(
        back_populates="topic", lazy="raise"
    )
    lecturer_registrations: Mapped[list["LecturerRegistration"]] = relationship(
        back_populates="topic", lazy="raise"
    )


class PhaseHistory(Base):
    """One append-only ledger entry: the status a topic moved into.

    The autoincrement primary key is the temporal order. Rows are never
    updated or deleted.
    """

    __tablename__ = "topic_phase_histories"
    __table_args__ = (
        Index("idx_phase_histories_topic", "topic_id", "id"),
        CheckConstraint(_one_of("phase_name", PeriodPhase), name="ck_history_phase"),
        CheckConstraint(_one_of("status", TopicStatus), name="ck_history_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("topics.id", ondelete="RESTRICT"), nullable=False
    )
    phase_name: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    actor: Mapped[str] = mapped_column(String(64), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    topic: Mapped["Topic"] = relationship(back_populates="phase_histories", lazy="raise")


# ===========================================
# REGISTRATIONS
# ===========================================


class StudentRegistration(Base):
    """A student's request for (or assignment to) a seat on a topic."""

    __tablename__ = "student_registrations"
    __table_args__ = (
        Index("idx_student_reg_topic_status", "topic_id", "status"),
        Index("idx_student_reg_student_status", "student_id", "status"),
        CheckConstraint(_one_of("status", StudentRegistrationStatus), name="ck_student_reg_status"),
        CheckConstraint(
            _one_of("student_role", StudentRole, nullable=True), name="ck_student_reg_role"
        ),
        CheckConstraint(
            _one_of("rejection_reason_type", RejectionReasonType, nullable=True),
            name="ck_student_reg_rejection_reason",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    topic_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("topics.id", ondelete="RESTRICT"), nullable=False
    )
    student_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    student_note: Mapped[str | None] = mapped_column(Text)
    lecturer_response: Mapped[str | None] = mapped_column(Text)
    rejection_reason_type: Mapped[str | None] = mapped_column(String(50))
    processed_by: Mapped[UUID | None] = mapped_column(Uuid)
    student_role: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    topic: Mapped["Topic"] = relationship(back_populates="student_registrations", lazy="raise")


class LecturerRegistration(Base):
    """A lecturer's supervisor slot on a topic (main or co-supervisor)."""

    __tablename__ = "lecturer_registrations"
    __table_args__ = (
        Index("idx_lecturer_reg_topic", "topic_id"),
        CheckConstraint(_one_of("role", LecturerRole), name="ck_lecturer_reg_role"),
        CheckConstraint(
            _one_of("status", LecturerRegistrationStatus), name="ck_lecturer_reg_status"
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    topic_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("topics.id", ondelete="RESTRICT"), nullable=False
    )
    lecturer_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LecturerRegistrationStatus.APPROVED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    topic: Mapped["Topic"] = relationship(back_populates="lecturer_registrations", lazy="raise")
