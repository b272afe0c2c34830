"""Tests for the SchedulerService."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from lifesync.errors import (
    InvalidIntervalError,
    InvalidTaskStateError,
    TaskNotFoundError,
    UnknownTaskTypeError,
)
from lifesync.models.scheduled_task import DispatchReport, TaskOutcome, TaskStatus, TaskType
from lifesync.services.dispatcher import TaskDispatcher
from lifesync.services.handlers import HandlerRegistry
from lifesync.services.scheduler import SchedulerService

from conftest import T0


@pytest.fixture
def handler():
    return AsyncMock(return_value={"ok": True})


@pytest.fixture
def scheduler(store, clock, handler):
    registry = HandlerRegistry()
    registry.register(TaskType.CUSTOM, handler)
    dispatcher = TaskDispatcher(store, registry, clock)
    return SchedulerService(store, dispatcher, clock, batch_size=10, trigger_interval=1)


class TestScheduleTask:
    async def test_schedule_one_shot(self, scheduler, store):
        task_id = await scheduler.schedule_task(
            name="Say hi", type="custom", scheduled_time=T0 + 1_000
        )

        task = await store.get_by_id(task_id)
        assert task.status == TaskStatus.PENDING
        assert task.next_run == T0 + 1_000
        assert task.scheduled_time == T0 + 1_000
        assert task.interval is None
        assert task.data == {}
        assert task.version == 0

    async def test_schedule_recurring_with_data(self, scheduler, store):
        task_id = await scheduler.schedule_task(
            name="Weekly backup",
            type="backup",
            scheduled_time=T0,
            interval="1w",
            data={"collections": ["users"], "recipients": ["ops@example.com"]},
        )

        task = await store.get_by_id(task_id)
        assert task.interval == "1w"
        assert task.data["collections"] == ["users"]

    async def test_invalid_interval_rejected_before_insert(self, scheduler, store):
        with pytest.raises(InvalidIntervalError):
            await scheduler.schedule_task(
                name="Bad", type="custom", scheduled_time=T0, interval="5x"
            )
        assert await store.list_tasks() == []

    async def test_unknown_type_rejected(self, scheduler, store):
        with pytest.raises(UnknownTaskTypeError):
            await scheduler.schedule_task(name="Bad", type="mystery", scheduled_time=T0)
        assert await store.list_tasks() == []


class TestRunScheduledTasks:
    async def test_runs_due_tasks(self, scheduler, handler):
        await scheduler.schedule_task(name="now", type="custom", scheduled_time=T0)

        report = await scheduler.run_scheduled_tasks(5)

        assert report.succeeded == 1
        handler.assert_awaited_once()

    async def test_default_batch_size(self, store, clock):
        dispatcher = MagicMock()
        dispatcher.run_due = AsyncMock(return_value=DispatchReport(started_at=T0))
        scheduler = SchedulerService(store, dispatcher, clock, batch_size=7)

        await scheduler.run_scheduled_tasks()

        dispatcher.run_due.assert_awaited_once_with(7)

    async def test_zero_batch_size_is_rejected(self, scheduler):
        with pytest.raises(ValueError):
            await scheduler.run_scheduled_tasks(0)

    async def test_publishes_report_when_tasks_ran(self, scheduler):
        api_service = MagicMock()
        api_service.publish_dispatch_report = AsyncMock()
        scheduler.set_api_service(api_service)
        await scheduler.schedule_task(name="now", type="custom", scheduled_time=T0)

        report = await scheduler.run_scheduled_tasks()

        api_service.publish_dispatch_report.assert_awaited_once_with(report)

    async def test_broadcast_failure_still_returns_report(self, scheduler, store):
        api_service = MagicMock()
        api_service.publish_dispatch_report = AsyncMock(
            side_effect=RuntimeError("NATS connection not established")
        )
        scheduler.set_api_service(api_service)
        task_id = await scheduler.schedule_task(name="now", type="custom", scheduled_time=T0)

        report = await scheduler.run_scheduled_tasks()

        assert report.succeeded == 1
        assert (await store.get_by_id(task_id)).status == TaskStatus.COMPLETED

    async def test_no_publish_for_empty_batch(self, scheduler):
        api_service = MagicMock()
        api_service.publish_dispatch_report = AsyncMock()
        scheduler.set_api_service(api_service)

        await scheduler.run_scheduled_tasks()

        api_service.publish_dispatch_report.assert_not_awaited()


class TestOperatorTransitions:
    async def test_get_missing_task(self, scheduler):
        with pytest.raises(TaskNotFoundError):
            await scheduler.get_task("00000000-0000-0000-0000-000000000000")

    async def test_pause_and_resume(self, scheduler, handler):
        task_id = await scheduler.schedule_task(name="t", type="custom", scheduled_time=T0)

        paused = await scheduler.pause_task(task_id)
        assert paused.status == TaskStatus.PAUSED
        report = await scheduler.run_scheduled_tasks()
        assert report.outcomes == []

        resumed = await scheduler.resume_task(task_id)
        assert resumed.status == TaskStatus.PENDING
        assert resumed.next_run == T0
        await scheduler.run_scheduled_tasks()
        handler.assert_awaited_once()

    async def test_resume_requires_paused(self, scheduler):
        task_id = await scheduler.schedule_task(name="t", type="custom", scheduled_time=T0)

        with pytest.raises(InvalidTaskStateError, match="is pending"):
            await scheduler.resume_task(task_id)

    async def test_pause_missing_task(self, scheduler):
        with pytest.raises(TaskNotFoundError):
            await scheduler.pause_task("00000000-0000-0000-0000-000000000000")

    async def test_requeue_failed_task(self, scheduler, handler, clock):
        handler.side_effect = [RuntimeError("boom"), {"ok": True}]
        task_id = await scheduler.schedule_task(name="t", type="custom", scheduled_time=T0)
        await scheduler.run_scheduled_tasks()
        assert (await scheduler.get_task(task_id)).status == TaskStatus.FAILED

        clock.advance(60_000)
        requeued = await scheduler.requeue_task(task_id)

        assert requeued.status == TaskStatus.PENDING
        assert requeued.next_run == T0 + 60_000
        assert requeued.last_error is None
        report = await scheduler.run_scheduled_tasks()
        assert report.succeeded == 1
        assert (await scheduler.get_task(task_id)).status == TaskStatus.COMPLETED

    async def test_requeue_requires_failed(self, scheduler):
        task_id = await scheduler.schedule_task(name="t", type="custom", scheduled_time=T0)

        with pytest.raises(InvalidTaskStateError):
            await scheduler.requeue_task(task_id)

    async def test_list_tasks_by_status(self, scheduler):
        a = await scheduler.schedule_task(name="a", type="custom", scheduled_time=T0)
        await scheduler.schedule_task(name="b", type="custom", scheduled_time=T0)
        await scheduler.pause_task(a)

        paused = await scheduler.list_tasks(TaskStatus.PAUSED)

        assert [t.task_id for t in paused] == [a]
        assert len(await scheduler.list_tasks()) == 2


class TestTriggerLoop:
    async def test_start_and_stop(self, store, clock):
        dispatcher = MagicMock()
        dispatcher.run_due = AsyncMock(return_value=DispatchReport(started_at=T0))
        scheduler = SchedulerService(store, dispatcher, clock, trigger_interval=60)

        await scheduler.start()
        await asyncio.sleep(0.01)
        await scheduler.stop()

        dispatcher.run_due.assert_awaited_once_with(10)

    async def test_loop_survives_errors(self, store, clock):
        dispatcher = MagicMock()
        dispatcher.run_due = AsyncMock(
            side_effect=[
                RuntimeError("database unavailable"),
                DispatchReport(
                    started_at=T0,
                    outcomes=[TaskOutcome(task_id="t1", success=True)],
                ),
            ]
        )
        scheduler = SchedulerService(store, dispatcher, clock, trigger_interval=0)

        await scheduler.start()
        for _ in range(20):
            await asyncio.sleep(0.01)
            if dispatcher.run_due.await_count >= 2:
                break
        await scheduler.stop()

        assert dispatcher.run_due.await_count >= 2

    async def test_stop_lets_running_batch_finish(self, store, clock):
        started = asyncio.Event()

        async def slow_backup(task):
            started.set()
            await asyncio.sleep(0.05)
            return {"backupCompleted": True}

        registry = HandlerRegistry()
        registry.register(TaskType.BACKUP, slow_backup)
        scheduler = SchedulerService(
            store, TaskDispatcher(store, registry, clock), clock, trigger_interval=60
        )
        task_id = await scheduler.schedule_task(
            name="nightly backup", type="backup", scheduled_time=T0
        )

        await scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=1)
        await scheduler.stop()

        assert (await store.get_by_id(task_id)).status == TaskStatus.COMPLETED

    async def test_stop_interrupts_idle_wait(self, store, clock):
        dispatcher = MagicMock()
        dispatcher.run_due = AsyncMock(return_value=DispatchReport(started_at=T0))
        scheduler = SchedulerService(store, dispatcher, clock, trigger_interval=3600)

        await scheduler.start()
        await asyncio.sleep(0.01)
        await asyncio.wait_for(scheduler.stop(), timeout=1)

        dispatcher.run_due.assert_awaited_once()
