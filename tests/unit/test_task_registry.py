"""Unit tests for TaskRegistry."""

import asyncio

import pytest

from tabmux.core.task_registry import TaskRegistry

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_spawn_tracks_until_completion():
    registry = TaskRegistry()
    ready = asyncio.Event()

    async def pump():
        await ready.wait()
        return "done"

    task = registry.spawn(pump(), name="pump-1")
    assert registry.task_count() == 1

    ready.set()
    assert await task == "done"
    await asyncio.sleep(0)

    assert registry.task_count() == 0


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_tasks():
    registry = TaskRegistry()

    async def forever():
        await asyncio.Event().wait()

    task = registry.spawn(forever(), name="stuck")
    await asyncio.sleep(0)

    await registry.shutdown(timeout=0.5)

    assert task.cancelled()
    assert registry.task_count() == 0


@pytest.mark.asyncio
async def test_failed_task_is_removed():
    registry = TaskRegistry()

    async def broken():
        raise RuntimeError("boom")

    task = registry.spawn(broken(), name="broken")
    with pytest.raises(RuntimeError):
        await task
    await asyncio.sleep(0)

    assert registry.task_count() == 0


@pytest.mark.asyncio
async def test_shutdown_without_tasks_is_noop():
    registry = TaskRegistry()

    await registry.shutdown()

    assert registry.task_count() == 0
