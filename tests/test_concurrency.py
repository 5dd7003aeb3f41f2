"""Tests for the gwent daemon permit pool."""
from __future__ import annotations

import asyncio

import pytest

from tts_service.tts.concurrency import (
    PermitPool,
    PermitRejectedError,
    PermitTimeoutError,
)
from tts_service.tts.errors import BackendBusyError


class TestPermitPoolBasics:
    def test_creation(self):
        pool = PermitPool(max_permits=3, max_queue=5, acquire_timeout=1.0)
        stats = pool.stats()
        assert stats.max_permits == 3
        assert stats.max_queue == 5
        assert stats.in_use == 0

    @pytest.mark.parametrize("value", [0, -2])
    def test_non_positive_permits_rejected(self, value):
        with pytest.raises(ValueError):
            PermitPool(max_permits=value)

    def test_try_acquire_and_release(self):
        pool = PermitPool(max_permits=1)
        assert pool.try_acquire() is True
        assert pool.try_acquire() is False
        pool.release()
        assert pool.in_use == 0

    def test_release_without_permit_raises(self):
        with pytest.raises(RuntimeError):
            PermitPool(max_permits=1).release()

    def test_on_change_callback(self):
        seen = []
        pool = PermitPool(max_permits=2, on_change=seen.append)
        pool.try_acquire()
        pool.try_acquire()
        pool.release()
        assert seen == [1, 2, 1]

    def test_stats_to_dict(self):
        pool = PermitPool(max_permits=2)
        pool.try_acquire()
        d = pool.stats().to_dict()
        assert d["in_use"] == 1
        assert d["total_acquired"] == 1
        assert d["peak_in_use"] == 1


class TestAsyncAcquire:
    def test_context_releases_on_success(self):
        pool = PermitPool(max_permits=1)

        async def run():
            async with pool.acquire():
                assert pool.in_use == 1

        asyncio.run(run())
        assert pool.in_use == 0

    def test_context_releases_on_error(self):
        pool = PermitPool(max_permits=1)

        async def run():
            async with pool.acquire():
                raise ValueError("backend blew up")

        with pytest.raises(ValueError):
            asyncio.run(run())
        assert pool.in_use == 0

    def test_never_exceeds_max_permits(self):
        """Many concurrent callers never hold more than max_permits."""
        pool = PermitPool(max_permits=3, max_queue=100, acquire_timeout=5.0)
        current = 0
        peak = 0

        async def worker():
            nonlocal current, peak
            async with pool.acquire():
                current += 1
                peak = max(peak, current)
                await asyncio.sleep(0.01)
                current -= 1

        async def run():
            await asyncio.gather(*(worker() for _ in range(20)))

        asyncio.run(run())
        assert peak == 3
        assert pool.stats().peak_in_use == 3
        assert pool.stats().total_acquired == 20
        assert pool.in_use == 0
        assert pool.waiting == 0

    def test_fail_fast_without_queue(self):
        pool = PermitPool(max_permits=1, max_queue=0)

        async def run():
            async with pool.acquire():
                async with pool.acquire():
                    pass

        with pytest.raises(PermitRejectedError) as exc_info:
            asyncio.run(run())
        assert isinstance(exc_info.value, BackendBusyError)
        assert pool.in_use == 0
        assert pool.stats().total_rejected == 1

    def test_full_queue_rejects(self):
        pool = PermitPool(max_permits=1, max_queue=1, acquire_timeout=1.0)

        async def run():
            gate = asyncio.Event()

            async def holder():
                async with pool.acquire():
                    await gate.wait()

            async def waiter():
                async with pool.acquire():
                    pass

            holding = asyncio.create_task(holder())
            await asyncio.sleep(0.01)
            waiting = asyncio.create_task(waiter())
            await asyncio.sleep(0.01)
            assert pool.waiting == 1

            with pytest.raises(PermitRejectedError):
                async with pool.acquire():
                    pass

            gate.set()
            await asyncio.gather(holding, waiting)

        asyncio.run(run())
        assert pool.in_use == 0
        assert pool.waiting == 0

    def test_wait_times_out(self):
        pool = PermitPool(max_permits=1, max_queue=4, acquire_timeout=0.05)

        async def run():
            assert pool.try_acquire()
            try:
                with pytest.raises(PermitTimeoutError):
                    async with pool.acquire():
                        pass
            finally:
                pool.release()

        asyncio.run(run())
        assert pool.in_use == 0
        assert pool.waiting == 0

    def test_waiter_gets_permit_when_released(self):
        pool = PermitPool(max_permits=1, max_queue=1, acquire_timeout=1.0)

        async def run():
            assert pool.try_acquire()

            async def release_later():
                await asyncio.sleep(0.02)
                pool.release()

            releaser = asyncio.create_task(release_later())
            async with pool.acquire():
                assert pool.in_use == 1
            await releaser

        asyncio.run(run())
        assert pool.in_use == 0

    def test_cancelled_waiter_frees_queue_slot(self):
        pool = PermitPool(max_permits=1, max_queue=1, acquire_timeout=5.0)

        async def run():
            assert pool.try_acquire()

            async def waiter():
                async with pool.acquire():
                    pass

            task = asyncio.create_task(waiter())
            await asyncio.sleep(0.02)
            assert pool.waiting == 1
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            pool.release()

        asyncio.run(run())
        assert pool.waiting == 0
        assert pool.in_use == 0


class TestWaitOrder:
    """Queued callers are served in arrival order."""

    def test_new_arrival_does_not_jump_the_queue(self):
        pool = PermitPool(max_permits=1, max_queue=4, acquire_timeout=1.0)

        async def run():
            assert pool.try_acquire()

            async def queued():
                async with pool.acquire():
                    order.append("queued")
                    await asyncio.sleep(0.02)

            order = []
            task = asyncio.create_task(queued())
            await asyncio.sleep(0.02)
            assert pool.waiting == 1

            pool.release()
            assert pool.try_acquire() is False
            await task
            return order

        assert asyncio.run(run()) == ["queued"]
        assert pool.in_use == 0

    def test_waiters_served_first_in_first_out(self):
        pool = PermitPool(max_permits=1, max_queue=4, acquire_timeout=2.0)

        async def run():
            order = []
            assert pool.try_acquire()

            async def waiter(label):
                async with pool.acquire():
                    order.append(label)

            tasks = []
            for label in ("a", "b", "c"):
                tasks.append(asyncio.create_task(waiter(label)))
                await asyncio.sleep(0.01)
            pool.release()
            await asyncio.gather(*tasks)
            return order

        assert asyncio.run(run()) == ["a", "b", "c"]
