"""LifeSync scheduler FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from lifesync.clock import Clock, SystemClock
from lifesync.config import Settings
from lifesync.db import create_engine, create_session_factory
from lifesync.db.models import Base
from lifesync.messaging import NatsConnection
from lifesync.routes import cron_router, health_router
from lifesync.services import (
    ApiService,
    DatabaseTaskStore,
    NotificationClient,
    PriceAlertService,
    ReportGenerator,
    SchedulerService,
    TaskDispatcher,
    TaskHandlers,
)

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    clock = clock or SystemClock()

    # Initialize database
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    logger.info(f"Database connection configured: {settings.database_url.split('@')[-1]}")

    # One NATS connection shared by delivery, reporting and the API
    connection = NatsConnection(url=settings.nats_url, name="lifesync-scheduler")
    notifications = NotificationClient(connection, timeout=settings.sender_timeout)
    reports = ReportGenerator(connection, timeout=settings.report_request_timeout)

    # Initialize core services
    store = DatabaseTaskStore(session_factory)
    alerts = PriceAlertService(
        session_factory,
        notifications,
        store,
        clock,
        base_url=settings.base_url,
        cooldown_ms=settings.alert_cooldown_ms,
        retry_delay_ms=settings.alert_retry_delay_ms,
    )
    handlers = TaskHandlers(
        session_factory,
        notifications,
        reports,
        alerts,
        clock,
        cleanup_max_age_days=settings.cleanup_max_age_days,
        donation_reminder_idle_days=settings.donation_reminder_idle_days,
    )
    dispatcher = TaskDispatcher(
        store,
        handlers.build_registry(),
        clock,
        task_timeout=settings.task_timeout_seconds,
    )
    scheduler = SchedulerService(
        store,
        dispatcher,
        clock,
        batch_size=settings.scheduler_batch_size,
        trigger_interval=settings.trigger_interval,
    )
    api_service = ApiService(connection, scheduler, alerts)
    scheduler.set_api_service(api_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("LifeSync scheduler starting up")

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

        await notifications.connect()
        await api_service.start()

        if settings.trigger_enabled:
            await scheduler.start()

        yield

        await scheduler.stop()
        await api_service.stop()
        await notifications.close()

        await engine.dispose()
        logger.info("Database connection closed")

        logger.info("LifeSync scheduler shutting down")

    scheduler_app = FastAPI(
        title="LifeSync Scheduler",
        description="Scheduled task runner and alert dispatch for LifeSync",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store services in app.state for dependency injection
    scheduler_app.state.settings = settings
    scheduler_app.state.scheduler = scheduler
    scheduler_app.state.alerts = alerts
    scheduler_app.state.handlers = handlers
    scheduler_app.state.notifications = notifications
    scheduler_app.state.api_service = api_service

    # Include routers
    scheduler_app.include_router(health_router)
    scheduler_app.include_router(cron_router)

    return scheduler_app
