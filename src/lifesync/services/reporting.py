"""Client for the external report generator."""

import asyncio
import logging
from typing import Any

import nats.errors

from lifesync.errors import HandlerExecutionError
from lifesync.messaging import NatsConnection, Subjects

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Requests report data from the reporting service over NATS."""

    def __init__(self, connection: NatsConnection, timeout: float = 60.0) -> None:
        self._conn = connection
        self._timeout = timeout

    async def generate(
        self, report_type: str, date_range: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            reply = await self._conn.request(
                Subjects.API_REPORT_GENERATE,
                {"report_type": report_type, "date_range": date_range},
                timeout=self._timeout,
            )
        except (nats.errors.Error, asyncio.TimeoutError, RuntimeError) as e:
            raise HandlerExecutionError(
                f"Report generation for {report_type} failed: {e}"
            ) from e

        if reply.get("error"):
            raise HandlerExecutionError(
                f"Report generation for {report_type} rejected: {reply['error']}"
            )
        logger.debug(f"Received {report_type} report")
        return reply
