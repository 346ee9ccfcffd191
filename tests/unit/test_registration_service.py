"""Tests for registration admission rules."""

import pytest
from unittest.mock import MagicMock
from uuid import uuid4

from capstone.registrations.exceptions import (
    AlreadyRegisteredError,
    LecturerSlotFullError,
    OneActiveRegistrationPerCategoryError,
    PreviouslyRejectedError,
    RegistrationNotFoundError,
    RegistrationNotPendingError,
    SlotFullError,
    TopicFullError,
)
from capstone.registrations.service import LecturerRegistrationService, StudentRegistrationService
from capstone.topics.enums import TopicStatus, TopicType
from capstone.topics.exceptions import TopicNotFoundError
from capstone.topics.locks import TopicLockRegistry
from tests.factories.topic_factory import (
    make_lecturer_registration,
    make_student_registration,
    make_topic,
)
from tests.factories.uow_factory import make_uow


def make_service(uow, service_class=StudentRegistrationService):
    service = service_class(session_factory=MagicMock(), locks=TopicLockRegistry())
    service._unit_of_work = MagicMock(return_value=uow)
    return service


class TestRegister:
    """Tests for registration creation."""

    @pytest.mark.asyncio
    async def test_topic_not_found(self):
        service = make_service(make_uow(topic=None))

        with pytest.raises(TopicNotFoundError):
            await service.register("student", uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_full_topic_rejected(self):
        topic = make_topic(status=TopicStatus.FULL)
        uow = make_uow(topic=topic)
        service = make_service(uow)

        with pytest.raises(TopicFullError):
            await service.register("student", uuid4(), topic.id)
        uow.student_registrations.create.assert_not_awaited()
        uow.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_previously_rejected_student(self):
        topic = make_topic()
        uow = make_uow(topic=topic)
        uow.student_registrations.has_rejected.return_value = True
        service = make_service(uow)

        with pytest.raises(PreviouslyRejectedError):
            await service.register("student", uuid4(), topic.id)

    @pytest.mark.asyncio
    async def test_previously_rejected_wins_over_full(self):
        topic = make_topic(status=TopicStatus.FULL)
        uow = make_uow(topic=topic)
        uow.student_registrations.has_rejected.return_value = True
        service = make_service(uow)

        with pytest.raises(PreviouslyRejectedError):
            await service.register("student", uuid4(), topic.id)
        uow.student_registrations.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lecturer_may_assign_previously_rejected_student(self):
        topic = make_topic(max_students=2)
        uow = make_uow(topic=topic)
        uow.student_registrations.has_rejected.return_value = True
        service = make_service(uow)

        result = await service.register("lecturer", uuid4(), topic.id)

        assert result.current_status == TopicStatus.REGISTERED.value
        uow.student_registrations.has_rejected.assert_not_awaited()
        uow.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_registered(self):
        topic = make_topic()
        uow = make_uow(topic=topic)
        uow.student_registrations.get_active.return_value = make_student_registration(topic)
        service = make_service(uow)

        with pytest.raises(AlreadyRegisteredError):
            await service.register("student", uuid4(), topic.id)

    @pytest.mark.asyncio
    async def test_one_active_registration_per_category(self):
        topic = make_topic(type=TopicType.THESIS)
        uow = make_uow(topic=topic, active_elsewhere=1)
        service = make_service(uow)

        with pytest.raises(OneActiveRegistrationPerCategoryError):
            await service.register("student", uuid4(), topic.id)

    @pytest.mark.asyncio
    async def test_research_topic_skips_category_check_and_waits_for_review(self):
        topic = make_topic(type=TopicType.SCIENTIFIC_RESEARCH)
        uow = make_uow(topic=topic, active_elsewhere=1)
        service = make_service(uow)

        result = await service.register("student", uuid4(), topic.id)

        uow.student_registrations.count_active_in_other_topics.assert_not_awaited()
        created = uow.student_registrations.create.await_args.kwargs
        assert created["status"] == "pending"
        assert result.current_status == TopicStatus.PENDING_REGISTRATION.value

    @pytest.mark.asyncio
    async def test_manual_approval_creates_pending_without_ledger_entry(self):
        topic = make_topic(allow_manual_approval=True)
        uow = make_uow(topic=topic)
        service = make_service(uow)

        await service.register("student", uuid4(), topic.id, student_note="pick me")

        created = uow.student_registrations.create.await_args.kwargs
        assert created["status"] == "pending"
        assert created["student_note"] == "pick me"
        uow.phase_histories.append.assert_not_awaited()
        uow.topics.touch.assert_awaited()

    @pytest.mark.asyncio
    async def test_immediate_approval_fills_single_seat(self):
        topic = make_topic(max_students=1)
        uow = make_uow(topic=topic)
        service = make_service(uow)

        result = await service.register("student", uuid4(), topic.id)

        assert result.current_status == TopicStatus.FULL.value
        entry = uow.phase_histories.append.await_args.kwargs
        assert entry["status"] == "full"
        assert entry["actor"] == "system"

    @pytest.mark.asyncio
    async def test_immediate_approval_respects_capacity(self):
        topic = make_topic(status=TopicStatus.DRAFT, max_students=1)
        uow = make_uow(topic=topic, approved_count=1)
        service = make_service(uow)

        with pytest.raises(SlotFullError):
            await service.register("lecturer", uuid4(), topic.id)
        uow.student_registrations.create.assert_not_awaited()


class TestApprove:
    """Tests for lecturer approval."""

    @pytest.mark.asyncio
    async def test_registration_not_found(self):
        service = make_service(make_uow(topic=make_topic()))

        with pytest.raises(RegistrationNotFoundError):
            await service.approve(uuid4(), uuid4())

    @pytest.mark.asyncio
    async def test_only_pending_can_be_approved(self):
        topic = make_topic()
        registration = make_student_registration(topic, status="cancelled")
        uow = make_uow(topic=topic)
        uow.student_registrations.get_by_id.return_value = registration
        service = make_service(uow)

        with pytest.raises(RegistrationNotPendingError):
            await service.approve(registration.id, uuid4())

    @pytest.mark.asyncio
    async def test_slot_full_leaves_registration_pending(self):
        topic = make_topic(status=TopicStatus.FULL, max_students=2)
        registration = make_student_registration(topic)
        uow = make_uow(topic=topic, approved_count=2)
        uow.student_registrations.get_by_id.return_value = registration
        service = make_service(uow)

        with pytest.raises(SlotFullError):
            await service.approve(registration.id, uuid4())

        assert registration.status == "pending"
        uow.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cross_topic_rule_rechecked(self):
        topic = make_topic(max_students=2)
        registration = make_student_registration(topic)
        uow = make_uow(topic=topic, active_elsewhere=1)
        uow.student_registrations.get_by_id.return_value = registration
        service = make_service(uow)

        with pytest.raises(OneActiveRegistrationPerCategoryError):
            await service.approve(registration.id, uuid4())

    @pytest.mark.asyncio
    async def test_approve_first_seat_registers_topic(self):
        topic = make_topic(max_students=3)
        registration = make_student_registration(topic)
        uow = make_uow(topic=topic)
        uow.student_registrations.get_by_id.return_value = registration
        service = make_service(uow)
        lecturer_id = uuid4()

        result = await service.approve(registration.id, lecturer_id, "leader", "Welcome")

        assert result.status == "approved"
        assert result.processed_by == lecturer_id
        assert result.student_role == "leader"
        assert result.lecturer_response == "Welcome"
        assert topic.current_status == TopicStatus.REGISTERED.value
        uow.phase_histories.append.assert_awaited_once()
        uow.commit.assert_awaited_once()


class TestRejectAndRelease:
    @pytest.mark.asyncio
    async def test_reject_records_reason_without_status_change(self):
        topic = make_topic(status=TopicStatus.REGISTERED, max_students=2)
        registration = make_student_registration(topic)
        uow = make_uow(topic=topic, approved_count=1)
        uow.student_registrations.get_by_id.return_value = registration
        service = make_service(uow)

        result = await service.reject(registration.id, uuid4(), "not_suitable", "Needs ML background")

        assert result.status == "rejected"
        assert result.rejection_reason_type == "not_suitable"
        assert topic.current_status == TopicStatus.REGISTERED.value
        uow.phase_histories.append.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_unknown_reason(self):
        service = make_service(make_uow(topic=make_topic()))

        with pytest.raises(ValueError):
            await service.reject(uuid4(), uuid4(), "bad_vibes")

    @pytest.mark.asyncio
    async def test_cancel_without_active_registration(self):
        topic = make_topic()
        service = make_service(make_uow(topic=topic))

        with pytest.raises(RegistrationNotFoundError):
            await service.cancel(topic.id, uuid4())

    @pytest.mark.asyncio
    async def test_cancel_approved_on_full_topic_frees_seat(self):
        topic = make_topic(status=TopicStatus.FULL, max_students=2)
        registration = make_student_registration(topic, status="approved")
        uow = make_uow(topic=topic, approved_count=2)
        uow.student_registrations.get_active.return_value = registration
        service = make_service(uow)

        result = await service.cancel(topic.id, registration.student_id)

        assert result == {"message": "Registration cancelled successfully"}
        assert registration.status == "cancelled"
        assert topic.current_status == TopicStatus.REGISTERED.value
        assert uow.phase_histories.append.await_args.kwargs["actor"] == "system"

    @pytest.mark.asyncio
    async def test_cancel_pending_does_not_touch_status(self):
        topic = make_topic(status=TopicStatus.REGISTERED, max_students=2)
        registration = make_student_registration(topic, status="pending")
        uow = make_uow(topic=topic, approved_count=1)
        uow.student_registrations.get_active.return_value = registration
        service = make_service(uow)

        await service.cancel(topic.id, registration.student_id)

        assert topic.current_status == TopicStatus.REGISTERED.value
        uow.phase_histories.append.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unassign_last_student_reopens_topic(self):
        topic = make_topic(status=TopicStatus.REGISTERED, max_students=3)
        registration = make_student_registration(topic, status="approved")
        uow = make_uow(topic=topic, approved_count=1)
        uow.student_registrations.get_active.return_value = registration
        service = make_service(uow)
        lecturer_id = uuid4()

        result = await service.unassign(lecturer_id, topic.id, registration.student_id)

        assert result.status == "withdrawn"
        assert result.processed_by == lecturer_id
        assert topic.current_status == TopicStatus.PENDING_REGISTRATION.value


class TestLecturerRegistration:
    """Tests for supervisor slots."""

    @pytest.mark.asyncio
    async def test_third_lecturer_rejected(self):
        topic = make_topic()
        uow = make_uow(topic=topic)
        uow.lecturer_registrations.list_active_by_topic.return_value = [
            make_lecturer_registration(topic, "main"),
            make_lecturer_registration(topic, "co_supervisor"),
        ]
        service = make_service(uow, LecturerRegistrationService)

        with pytest.raises(LecturerSlotFullError):
            await service.register_lecturer(topic.id, uuid4(), "co_supervisor")

    @pytest.mark.asyncio
    async def test_duplicate_lecturer(self):
        topic = make_topic()
        existing = make_lecturer_registration(topic, "main")
        uow = make_uow(topic=topic)
        uow.lecturer_registrations.list_active_by_topic.return_value = [existing]
        service = make_service(uow, LecturerRegistrationService)

        with pytest.raises(AlreadyRegisteredError):
            await service.register_lecturer(topic.id, existing.lecturer_id, "co_supervisor")

    @pytest.mark.asyncio
    async def test_role_already_held(self):
        topic = make_topic()
        uow = make_uow(topic=topic)
        uow.lecturer_registrations.list_active_by_topic.return_value = [
            make_lecturer_registration(topic, "main"),
        ]
        service = make_service(uow, LecturerRegistrationService)

        with pytest.raises(LecturerSlotFullError) as exc_info:
            await service.register_lecturer(topic.id, uuid4(), "main")
        assert "already has a main" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_cancel_unknown_lecturer(self):
        topic = make_topic()
        service = make_service(make_uow(topic=topic), LecturerRegistrationService)

        with pytest.raises(RegistrationNotFoundError):
            await service.cancel_lecturer(topic.id, uuid4())
