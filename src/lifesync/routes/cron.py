"""Cron webhook: lets a platform scheduler trigger a dispatch over HTTP."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from lifesync.dependencies import SchedulerDep, verify_cron_secret

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.post("/run", dependencies=[Depends(verify_cron_secret)])
async def run_scheduled_tasks(
    scheduler: SchedulerDep,
    batch_size: int | None = Query(default=None, gt=0),
) -> dict[str, Any]:
    """Run one dispatch batch and return its per-task outcomes."""
    report = await scheduler.run_scheduled_tasks(batch_size)
    return report.to_dict()
