from __future__ import annotations

import asyncio

import pytest
from conftest import FakeScheduler, settle

from schooltrack._scheduling import TaskRegistry


@pytest.mark.asyncio
async def test_rescheduling_a_key_replaces_the_timer(scheduler: FakeScheduler, registry: TaskRegistry) -> None:
    fired: list[str] = []
    registry.schedule("a", 5.0, lambda: fired.append("first"))
    registry.schedule("a", 10.0, lambda: fired.append("second"))

    assert registry.timer_count == 1
    await scheduler.advance(20.0)

    assert fired == ["second"]
    assert registry.pending == 0


@pytest.mark.asyncio
async def test_awaitable_callbacks_run_as_tracked_tasks(scheduler: FakeScheduler, registry: TaskRegistry) -> None:
    release = asyncio.Event()
    done: list[bool] = []

    async def work() -> None:
        await release.wait()
        done.append(True)

    registry.schedule("job", 1.0, work)
    await scheduler.advance(1.0)
    assert registry.pending == 1
    assert not registry.is_scheduled("job")

    release.set()
    await settle()
    assert done == [True]
    assert registry.pending == 0


@pytest.mark.asyncio
async def test_cancel_all_drains_timers_and_tasks(scheduler: FakeScheduler, registry: TaskRegistry) -> None:
    never = asyncio.Event()
    registry.schedule("a", 1.0, lambda: None)
    registry.schedule("b", 2.0, lambda: None)
    task = registry.spawn("c", never.wait())

    registry.cancel_all()
    await settle()

    assert registry.pending == 0
    assert task is not None and task.cancelled()
    assert all(t.cancelled for t in scheduler.timers)


@pytest.mark.asyncio
async def test_cancel_key_also_cancels_its_running_task(registry: TaskRegistry) -> None:
    never = asyncio.Event()
    task = registry.spawn("k", never.wait())
    registry.cancel("k")
    await settle()
    assert task is not None and task.cancelled()


@pytest.mark.asyncio
async def test_closed_registry_refuses_new_work(scheduler: FakeScheduler, registry: TaskRegistry) -> None:
    registry.close()
    registry.schedule("a", 1.0, lambda: None)

    async def noop() -> None:
        return None

    assert registry.spawn("b", noop()) is None
    assert registry.closed
    assert registry.pending == 0
    assert scheduler.timers == []


@pytest.mark.asyncio
async def test_failing_task_is_logged(registry: TaskRegistry, caplog: pytest.LogCaptureFixture) -> None:
    async def boom() -> None:
        raise RuntimeError("kaput")

    registry.spawn("boom", boom())
    await settle()
    assert "task boom failed" in caplog.text
    assert registry.pending == 0


@pytest.mark.asyncio
async def test_spawning_a_key_again_cancels_the_running_task(registry: TaskRegistry) -> None:
    first = registry.spawn("k", asyncio.sleep(100))
    second = registry.spawn("k", asyncio.sleep(100))
    await settle()

    assert first is not None and first.cancelled()
    assert registry.pending == 1

    registry.cancel_all()
    await settle()
    assert second is not None and second.cancelled()
    assert registry.pending == 0
