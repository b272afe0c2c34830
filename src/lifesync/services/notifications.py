"""Notification delivery through the LifeSync message gateway.

The gateway (a separate service owning the email and WhatsApp provider SDKs)
listens on `lifesync.gateway.<channel>.send` and replies with the provider
message id, or with an `error` field when delivery was refused.
"""

import asyncio
import logging
from typing import Any, Protocol

import nats.errors

from lifesync.errors import SenderDeliveryError
from lifesync.messaging import NatsConnection, Subjects
from lifesync.models.alert import Channel

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    async def send(
        self, channel: Channel, recipient: str, content: dict[str, Any]
    ) -> dict[str, Any]:
        """Deliver a message and return `{"id": <provider message id>}`.

        Raises:
            SenderDeliveryError: If the message was not accepted.
        """
        ...


class NotificationClient:
    """Sends notifications over NATS request/reply.

    Created once at startup and passed to whatever needs to send; the
    connection is opened and closed explicitly with connect()/close().
    """

    def __init__(self, connection: NatsConnection, timeout: float = 10.0) -> None:
        self._conn = connection
        self._timeout = timeout

    @property
    def connection(self) -> NatsConnection:
        return self._conn

    @property
    def is_connected(self) -> bool:
        return self._conn.is_connected

    async def connect(self) -> None:
        if not self._conn.is_connected:
            await self._conn.connect()
        logger.info("Notification client connected")

    async def close(self) -> None:
        await self._conn.close()
        logger.info("Notification client closed")

    async def send(
        self, channel: Channel, recipient: str, content: dict[str, Any]
    ) -> dict[str, Any]:
        channel = Channel(channel)
        subject = Subjects.gateway_send(channel.value)
        try:
            reply = await self._conn.request(
                subject,
                {"recipient": recipient, "content": content},
                timeout=self._timeout,
            )
        except (nats.errors.Error, asyncio.TimeoutError, RuntimeError) as e:
            raise SenderDeliveryError(
                f"{channel.value} delivery to {recipient} failed: {e}"
            ) from e
        except ValueError as e:
            raise SenderDeliveryError(
                f"{channel.value} gateway sent an unreadable reply for {recipient}: {e}"
            ) from e

        if not isinstance(reply, dict):
            raise SenderDeliveryError(
                f"{channel.value} gateway reply for {recipient} is not an object"
            )
        if reply.get("error"):
            raise SenderDeliveryError(
                f"{channel.value} delivery to {recipient} rejected: {reply['error']}"
            )
        message_id = reply.get("id")
        if not message_id:
            raise SenderDeliveryError(
                f"{channel.value} gateway reply for {recipient} carried no message id"
            )

        logger.debug(f"Sent {channel.value} message {message_id} to {recipient}")
        return {"id": message_id}
