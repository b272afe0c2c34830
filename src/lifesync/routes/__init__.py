from .cron import router as cron_router
from .health import router as health_router

__all__ = [
    "cron_router",
    "health_router",
]
