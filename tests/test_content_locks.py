"""Tests for the per-content lock arena."""

import asyncio

import pytest

from contentstore.content_locks import ContentLockRegistry


class TestContentLockRegistry:
    @pytest.mark.asyncio
    async def test_lock_removed_when_released(self):
        registry = ContentLockRegistry()

        async with registry.exclusive("a"):
            assert registry.is_locked("a")
            assert registry.active_count() == 1

        assert not registry.is_locked("a")
        assert registry.active_count() == 0

    @pytest.mark.asyncio
    async def test_reentrant_for_owning_task(self):
        registry = ContentLockRegistry()

        async with registry.exclusive("a"):
            async with registry.exclusive("a"):
                assert registry.is_locked("a")
            assert registry.is_locked("a")

        assert registry.active_count() == 0

    @pytest.mark.asyncio
    async def test_same_content_is_serialized(self):
        registry = ContentLockRegistry()
        events = []

        async def worker(name):
            async with registry.exclusive("a"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("one"), worker("two"))

        assert events in (
            ["one-in", "one-out", "two-in", "two-out"],
            ["two-in", "two-out", "one-in", "one-out"],
        )
        assert registry.active_count() == 0

    @pytest.mark.asyncio
    async def test_different_contents_do_not_contend(self):
        registry = ContentLockRegistry()
        entered_b = asyncio.Event()

        async def hold_a():
            async with registry.exclusive("a"):
                await asyncio.wait_for(entered_b.wait(), timeout=1)

        async def enter_b():
            async with registry.exclusive("b"):
                entered_b.set()

        await asyncio.gather(hold_a(), enter_b())

    @pytest.mark.asyncio
    async def test_released_after_exception(self):
        registry = ContentLockRegistry()

        with pytest.raises(RuntimeError):
            async with registry.exclusive("a"):
                raise RuntimeError("boom")

        assert registry.active_count() == 0
        async with registry.exclusive("a"):
            pass
