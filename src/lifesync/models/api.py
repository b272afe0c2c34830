"""API request/response schemas."""

from typing import Any

from pydantic import BaseModel, Field


# Scheduled task schemas
class ScheduledTaskCreate(BaseModel):
    name: str
    type: str
    scheduled_time: int
    interval: str | None = None
    data: dict[str, Any] = {}


class ScheduledTaskResponse(BaseModel):
    task_id: str
    name: str
    type: str
    status: str
    scheduled_time: int
    next_run: int | None
    last_run: int | None
    interval: str | None
    data: dict[str, Any]
    last_error: str | None
    version: int


class RunScheduledTasks(BaseModel):
    batch_size: int = Field(default=10, gt=0)


# Alert schemas
class PriceAlertSend(BaseModel):
    product_id: str
    force_send: bool = False


class PriceAlertResponse(BaseModel):
    alert_id: str
    product_id: str
    outcome: str
    skip_reason: str | None = None
    message_id: str | None = None
