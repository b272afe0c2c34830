"""Tests for NotificationClient and ReportGenerator with a mocked connection."""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock

import nats.errors

from lifesync.errors import HandlerExecutionError, SenderDeliveryError
from lifesync.messaging import Subjects
from lifesync.models.alert import Channel
from lifesync.services.notifications import NotificationClient
from lifesync.services.reporting import ReportGenerator


@pytest.fixture
def client(mock_connection):
    return NotificationClient(mock_connection, timeout=2.0)


class TestLifecycle:
    async def test_connect_when_disconnected(self, client, mock_connection):
        mock_connection.is_connected = False

        await client.connect()

        mock_connection.connect.assert_awaited_once()

    async def test_connect_is_noop_when_connected(self, client, mock_connection):
        await client.connect()

        mock_connection.connect.assert_not_awaited()

    async def test_close(self, client, mock_connection):
        await client.close()

        mock_connection.close.assert_awaited_once()

    def test_is_connected_reflects_connection(self, client, mock_connection):
        assert client.is_connected is True
        mock_connection.is_connected = False
        assert client.is_connected is False


class TestSend:
    async def test_email_request(self, client, mock_connection):
        mock_connection.request.return_value = {"id": "re_123"}
        content = {"subject": "Hi", "text": "Hello"}

        result = await client.send(Channel.EMAIL, "a@example.com", content)

        assert result == {"id": "re_123"}
        mock_connection.request.assert_awaited_once_with(
            "lifesync.gateway.email.send",
            {"recipient": "a@example.com", "content": content},
            timeout=2.0,
        )

    async def test_whatsapp_subject(self, client, mock_connection):
        mock_connection.request.return_value = {"id": "wa_1"}

        await client.send("whatsapp", "+15550100", {"text": "hi"})

        assert mock_connection.request.await_args.args[0] == Subjects.gateway_send("whatsapp")

    async def test_error_reply(self, client, mock_connection):
        mock_connection.request.return_value = {"error": "invalid address"}

        with pytest.raises(SenderDeliveryError, match="invalid address"):
            await client.send(Channel.EMAIL, "bad", {})

    async def test_reply_without_id(self, client, mock_connection):
        mock_connection.request.return_value = {}

        with pytest.raises(SenderDeliveryError, match="no message id"):
            await client.send(Channel.EMAIL, "a@example.com", {})

    @pytest.mark.parametrize(
        "exc",
        [
            asyncio.TimeoutError(),
            nats.errors.NoRespondersError(),
            RuntimeError("NATS connection not established. Call connect() first."),
        ],
    )
    async def test_transport_errors(self, client, mock_connection, exc):
        mock_connection.request = AsyncMock(side_effect=exc)

        with pytest.raises(SenderDeliveryError) as exc_info:
            await client.send(Channel.EMAIL, "a@example.com", {})

        assert exc_info.value.retryable is True
        assert exc_info.value.__cause__ is exc

    @pytest.mark.parametrize(
        "exc",
        [
            json.JSONDecodeError("Expecting value", "<html>", 0),
            UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
        ],
    )
    async def test_unreadable_reply(self, client, mock_connection, exc):
        mock_connection.request = AsyncMock(side_effect=exc)

        with pytest.raises(SenderDeliveryError, match="unreadable reply") as exc_info:
            await client.send(Channel.EMAIL, "a@example.com", {})

        assert exc_info.value.__cause__ is exc

    async def test_non_object_reply(self, client, mock_connection):
        mock_connection.request.return_value = ["msg-1"]

        with pytest.raises(SenderDeliveryError, match="not an object"):
            await client.send(Channel.EMAIL, "a@example.com", {})

    async def test_unknown_channel(self, client):
        with pytest.raises(ValueError):
            await client.send("pigeon", "roof", {})


class TestReportGenerator:
    async def test_generate(self, mock_connection):
        mock_connection.request.return_value = {"total": 12}
        generator = ReportGenerator(mock_connection, timeout=30.0)

        report = await generator.generate("donations", {"from": 0, "to": 1})

        assert report == {"total": 12}
        mock_connection.request.assert_awaited_once_with(
            Subjects.API_REPORT_GENERATE,
            {"report_type": "donations", "date_range": {"from": 0, "to": 1}},
            timeout=30.0,
        )

    async def test_error_reply(self, mock_connection):
        mock_connection.request.return_value = {"error": "unknown report"}

        with pytest.raises(HandlerExecutionError, match="unknown report"):
            await ReportGenerator(mock_connection).generate("bogus")

    async def test_timeout(self, mock_connection):
        mock_connection.request = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(HandlerExecutionError):
            await ReportGenerator(mock_connection).generate("donations")
