"""Liveness endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    notifications = request.app.state.notifications
    return {"status": "ok", "nats_connected": notifications.is_connected}
