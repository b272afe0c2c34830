"""FastAPI dependency injection providers for services."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from lifesync.config import Settings
from lifesync.services import SchedulerService


def get_scheduler(request: Request) -> SchedulerService:
    """Get the scheduler service from app state."""
    return request.app.state.scheduler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require `Authorization: Bearer <cron_secret>` when a secret is configured."""
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )


SchedulerDep = Annotated[SchedulerService, Depends(get_scheduler)]
