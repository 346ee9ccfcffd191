"""Tests for per-topic write serialization."""

import asyncio
from uuid import uuid4

import pytest

from capstone.topics.locks import TopicLockRegistry


class TestTopicLockRegistry:
    @pytest.mark.asyncio
    async def test_same_topic_is_serialized(self):
        locks = TopicLockRegistry()
        topic_id = uuid4()
        events: list[str] = []

        async def writer(name: str, delay: float):
            async with locks.hold(topic_id):
                events.append(f"{name}-start")
                await asyncio.sleep(delay)
                events.append(f"{name}-end")

        await asyncio.gather(writer("a", 0.02), writer("b", 0))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_topics_run_concurrently(self):
        locks = TopicLockRegistry()
        events: list[str] = []

        async def writer(name: str):
            async with locks.hold(uuid4()):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(writer("a"), writer("b"))

        assert events[:2] == ["a-start", "b-start"]

    @pytest.mark.asyncio
    async def test_student_lock_spans_topics(self):
        locks = TopicLockRegistry()
        student_id = uuid4()
        events: list[str] = []

        async def register(name: str, delay: float):
            async with locks.hold(uuid4(), student_id):
                events.append(f"{name}-start")
                await asyncio.sleep(delay)
                events.append(f"{name}-end")

        await asyncio.gather(register("a", 0.02), register("b", 0))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_opposite_student_order_does_not_deadlock(self):
        locks = TopicLockRegistry()
        s1, s2 = uuid4(), uuid4()

        async def assign(topic_id, *students):
            async with locks.hold(topic_id, *students):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(
            asyncio.gather(assign(uuid4(), s1, s2), assign(uuid4(), s2, s1)),
            timeout=1,
        )

    @pytest.mark.asyncio
    async def test_locks_are_released_on_error(self):
        locks = TopicLockRegistry()
        topic_id = uuid4()

        with pytest.raises(ValueError):
            async with locks.hold(topic_id, uuid4()):
                raise ValueError("boom")

        async with asyncio.timeout(1):
            async with locks.hold(topic_id):
                pass

    @pytest.mark.asyncio
    async def test_idle_keys_are_dropped(self):
        locks = TopicLockRegistry()
        topic_id = uuid4()

        async with locks.hold(topic_id, uuid4(), uuid4()):
            assert len(locks._locks) == 3

        assert locks._locks == {}
        assert locks._holders == {}

    @pytest.mark.asyncio
    async def test_contended_keys_are_dropped_after_last_holder(self):
        locks = TopicLockRegistry()
        topic_id, student_id = uuid4(), uuid4()

        async def writer():
            async with locks.hold(topic_id, student_id):
                await asyncio.sleep(0.01)

        await asyncio.gather(*(writer() for _ in range(5)))

        assert locks._locks == {}
        assert locks._holders == {}

    @pytest.mark.asyncio
    async def test_cancelled_waiter_releases_its_key(self):
        locks = TopicLockRegistry()
        topic_id = uuid4()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold(topic_id):
                entered.set()
                await release.wait()

        async def waiter():
            async with locks.hold(topic_id):
                pass

        first = asyncio.create_task(holder())
        await entered.wait()
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        second.cancel()
        with pytest.raises(asyncio.CancelledError):
            await second
        release.set()
        await first

        assert locks._locks == {}

    def test_registry_is_reusable_across_event_loops(self):
        locks = TopicLockRegistry()
        topic_id = uuid4()

        async def contend():
            async def writer():
                async with locks.hold(topic_id):
                    await asyncio.sleep(0.01)

            await asyncio.gather(writer(), writer())

        asyncio.run(contend())
        asyncio.run(contend())

        assert locks._locks == {}
