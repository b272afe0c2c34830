"""NATS connection shared by the scheduler's API, delivery and reporting clients."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

import nats
from nats.aio.client import Client
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription

logger = logging.getLogger(__name__)

RequestHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def encode(data: dict[str, Any] | None) -> bytes:
    """JSON-encode a payload. Values JSON cannot represent are stringified."""
    return json.dumps(data or {}, default=str).encode()


def decode(raw: bytes) -> dict[str, Any]:
    return json.loads(raw.decode()) if raw else {}


class NatsConnection:
    """One long-lived NATS client with JSON request/reply helpers.

    Request subscriptions made through this wrapper are remembered so that a
    service can withdraw them on shutdown without closing the connection the
    other clients still share.
    """

    def __init__(
        self, url: str = "nats://localhost:4222", name: str | None = "lifesync-scheduler"
    ) -> None:
        self._url = url
        self._name = name
        self._nc: Client | None = None
        self._subscriptions: list[Subscription] = []

    @property
    def nc(self) -> Client:
        if self._nc is None or self._nc.is_closed:
            raise RuntimeError("NATS connection not established. Call connect() first.")
        return self._nc

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    async def connect(self) -> None:
        """Connect, reconnecting forever if the server goes away."""

        async def error_cb(e: Exception) -> None:
            logger.error("NATS error: %s", e)

        async def disconnected_cb() -> None:
            logger.warning("NATS disconnected from %s", self._url)

        async def reconnected_cb() -> None:
            logger.info("NATS reconnected to %s", self._nc.connected_url if self._nc else "unknown")

        self._nc = await nats.connect(
            self._url,
            name=self._name,
            error_cb=error_cb,
            disconnected_cb=disconnected_cb,
            reconnected_cb=reconnected_cb,
            max_reconnect_attempts=-1,
            reconnect_time_wait=2,
        )
        logger.info("Connected to NATS at %s as %s", self._url, self._name)

    async def close(self) -> None:
        """Drain pending replies and close. Safe to call when never connected."""
        if self._nc and not self._nc.is_closed:
            await self._nc.drain()
            logger.info("NATS connection drained and closed")
        self._subscriptions.clear()

    async def publish(self, subject: str, data: dict[str, Any] | None = None) -> None:
        await self.nc.publish(subject, encode(data))

    async def request(
        self,
        subject: str,
        data: dict[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """Send a request and return the decoded reply.

        Raises:
            nats.errors.TimeoutError: If nobody replied in time
            nats.errors.NoRespondersError: If nothing is subscribed to subject
            RuntimeError: If the connection is not established
        """
        msg = await self.nc.request(subject, encode(data), timeout=timeout)
        return decode(msg.data)

    async def subscribe_request(
        self,
        subject: str,
        handler: RequestHandler,
        queue: str | None = None,
    ) -> Subscription:
        """Serve a request/reply subject; the handler's dict is the reply.

        An exception escaping the handler is logged and answered with
        `{"error": "Internal error"}` so the requester does not time out.
        """

        async def _cb(msg: Msg) -> None:
            try:
                reply = await handler(decode(msg.data))
            except Exception:
                logger.exception("Error handling request on %s", subject)
                reply = {"error": "Internal error"}
            if msg.reply:
                await msg.respond(encode(reply))

        sub = await self.nc.subscribe(subject, queue=queue, cb=_cb)
        self._subscriptions.append(sub)
        logger.debug("Serving requests on %s (queue=%s)", subject, queue)
        return sub

    async def unsubscribe_all(self) -> None:
        """Withdraw every request subscription made through this wrapper."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for sub in subscriptions:
            await sub.unsubscribe()
        if subscriptions:
            logger.info("Unsubscribed from %d request subjects", len(subscriptions))
