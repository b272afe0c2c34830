"""Tests for the NATS request/reply ApiService."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from lifesync.errors import SenderDeliveryError
from lifesync.messaging import Subjects
from lifesync.models.alert import AlertOutcome, AlertRecord, SkipReason
from lifesync.models.scheduled_task import DispatchReport, TaskOutcome, TaskType
from lifesync.services.api import ApiService
from lifesync.services.dispatcher import TaskDispatcher
from lifesync.services.handlers import HandlerRegistry
from lifesync.services.scheduler import SchedulerService

from conftest import T0


@pytest.fixture
def alerts():
    service = MagicMock()
    service.send_price_alert = AsyncMock()
    return service


@pytest.fixture
def scheduler(store, clock):
    registry = HandlerRegistry()
    registry.register(TaskType.CUSTOM, AsyncMock(return_value={"ok": True}))
    return SchedulerService(store, TaskDispatcher(store, registry, clock), clock)


@pytest.fixture
async def api(mock_connection, scheduler, alerts):
    service = ApiService(mock_connection, scheduler, alerts)
    scheduler.set_api_service(service)
    await service.start()
    return service


@pytest.fixture
def routes(api, mock_connection):
    """Subject -> subscribed request handler."""
    return {
        call.args[0]: call.args[1]
        for call in mock_connection.subscribe_request.await_args_list
    }


class TestStart:
    async def test_subscribes_every_subject(self, api, mock_connection, routes):
        assert set(routes) == {
            Subjects.API_SCHEDULED_TASKS,
            Subjects.API_SCHEDULED_TASK_GET,
            Subjects.API_SCHEDULED_TASK_CREATE,
            Subjects.API_SCHEDULED_TASK_RUN,
            Subjects.API_SCHEDULED_TASK_PAUSE,
            Subjects.API_SCHEDULED_TASK_RESUME,
            Subjects.API_SCHEDULED_TASK_REQUEUE,
            Subjects.API_PRICE_ALERT_SEND,
        }
        for call in mock_connection.subscribe_request.await_args_list:
            assert call.kwargs["queue"] == "scheduler"

    async def test_stop_withdraws_subscriptions(self, api, mock_connection):
        await api.stop()

        mock_connection.unsubscribe_all.assert_awaited_once()
        mock_connection.close.assert_not_awaited()


class TestScheduledTaskApi:
    async def test_create_and_get(self, routes):
        created = await routes[Subjects.API_SCHEDULED_TASK_CREATE](
            {"name": "Cleanup", "type": "data-cleanup", "scheduled_time": T0, "interval": "1d"}
        )
        assert "task_id" in created

        fetched = await routes[Subjects.API_SCHEDULED_TASK_GET]({"task_id": created["task_id"]})

        assert fetched["name"] == "Cleanup"
        assert fetched["type"] == "data-cleanup"
        assert fetched["status"] == "pending"
        assert fetched["next_run"] == T0
        assert fetched["interval"] == "1d"
        assert fetched["version"] == 0

    async def test_create_with_invalid_interval(self, routes):
        reply = await routes[Subjects.API_SCHEDULED_TASK_CREATE](
            {"name": "Bad", "type": "custom", "scheduled_time": T0, "interval": "5x"}
        )
        assert reply == {"error": "Invalid interval: '5x'"}

    async def test_create_missing_fields(self, routes):
        reply = await routes[Subjects.API_SCHEDULED_TASK_CREATE]({"name": "No type"})
        assert reply["error"].startswith("Invalid request")

    async def test_get_missing(self, routes):
        reply = await routes[Subjects.API_SCHEDULED_TASK_GET]({"task_id": "nope"})
        assert reply == {"error": "Scheduled task nope not found"}

    async def test_list_with_status_filter(self, routes):
        created = await routes[Subjects.API_SCHEDULED_TASK_CREATE](
            {"name": "t", "type": "custom", "scheduled_time": T0}
        )
        await routes[Subjects.API_SCHEDULED_TASK_PAUSE]({"task_id": created["task_id"]})

        paused = await routes[Subjects.API_SCHEDULED_TASKS]({"status": "paused"})
        pending = await routes[Subjects.API_SCHEDULED_TASKS]({"status": "pending"})

        assert [t["task_id"] for t in paused["tasks"]] == [created["task_id"]]
        assert pending["tasks"] == []

    async def test_list_with_bad_status(self, routes):
        reply = await routes[Subjects.API_SCHEDULED_TASKS]({"status": "sleeping"})
        assert "error" in reply

    async def test_run_broadcasts_report(self, routes, mock_connection):
        await routes[Subjects.API_SCHEDULED_TASK_CREATE](
            {"name": "t", "type": "custom", "scheduled_time": T0}
        )

        reply = await routes[Subjects.API_SCHEDULED_TASK_RUN]({"batch_size": 5})

        assert reply["succeeded"] == 1
        assert reply["failed"] == 0
        mock_connection.publish.assert_awaited_once()
        subject, payload = mock_connection.publish.await_args.args
        assert subject == Subjects.BROADCAST_DISPATCH_COMPLETED
        assert payload == reply

    async def test_run_rejects_bad_batch_size(self, routes):
        reply = await routes[Subjects.API_SCHEDULED_TASK_RUN]({"batch_size": 0})
        assert reply["error"].startswith("Invalid request")

    async def test_resume_wrong_state(self, routes):
        created = await routes[Subjects.API_SCHEDULED_TASK_CREATE](
            {"name": "t", "type": "custom", "scheduled_time": T0}
        )
        reply = await routes[Subjects.API_SCHEDULED_TASK_RESUME]({"task_id": created["task_id"]})
        assert "requires status paused" in reply["error"]


class TestPublishDispatchReport:
    async def test_failed_tasks_broadcast(self, api, mock_connection):
        report = DispatchReport(
            started_at=T0,
            outcomes=[
                TaskOutcome(task_id="ok", success=True),
                TaskOutcome(task_id="bad", success=False, error="boom"),
                TaskOutcome(task_id="lost", success=False, claimed=False),
            ],
        )

        await api.publish_dispatch_report(report)

        subjects = [c.args[0] for c in mock_connection.publish.await_args_list]
        assert subjects == [
            Subjects.BROADCAST_DISPATCH_COMPLETED,
            Subjects.BROADCAST_TASK_FAILED,
        ]
        assert mock_connection.publish.await_args.args[1] == {"task_id": "bad", "error": "boom"}


class TestPriceAlertApi:
    async def test_send(self, routes, alerts):
        alerts.send_price_alert.return_value = AlertRecord(
            alert_id="a1",
            subject_id="p1",
            recipient_id="u1",
            price_at_send=80.0,
            outcome=AlertOutcome.SKIPPED,
            created_at=T0,
            skip_reason=SkipReason.TOO_SOON,
        )

        reply = await routes[Subjects.API_PRICE_ALERT_SEND]({"product_id": "p1", "force_send": True})

        alerts.send_price_alert.assert_awaited_once_with("p1", force_send=True)
        assert reply == {
            "alert_id": "a1",
            "product_id": "p1",
            "outcome": "skipped",
            "skip_reason": "too_soon",
            "message_id": None,
        }

    async def test_delivery_failure_becomes_error_reply(self, routes, alerts):
        alerts.send_price_alert.side_effect = SenderDeliveryError("gateway down")

        reply = await routes[Subjects.API_PRICE_ALERT_SEND]({"product_id": "p1"})

        assert reply == {"error": "gateway down"}
