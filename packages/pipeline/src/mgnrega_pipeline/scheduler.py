"""
scheduler.py — Cron-driven current-period sync worker.

Runs SyncOrchestrator.sync_current() on settings.sync_cron_schedule
(default "0 2 * * *", daily at 02:00) inside an APScheduler AsyncIOScheduler.
The worker does nothing unless settings.sync_enabled is true.

Usage:
    mgnrega-pipeline worker
    mgnrega-pipeline worker --run-now --mock
"""

from __future__ import annotations

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from mgnrega_shared.config import settings
from mgnrega_pipeline.pipelines.sync import SyncOrchestrator
from mgnrega_pipeline.utils.logging import get_logger

log = get_logger(__name__, component="sync_worker")

SYNC_JOB_ID = "mgnrega_current_sync"


def build_scheduler(
    orchestrator: SyncOrchestrator,
    *,
    cron: str | None = None,
    use_mock_data: bool = False,
) -> AsyncIOScheduler:
    """Return an unstarted scheduler with the current-period sync job registered."""
    expression = cron or settings.sync_cron_schedule
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        orchestrator.sync_current,
        trigger=CronTrigger.from_crontab(expression),
        id=SYNC_JOB_ID,
        kwargs={"use_mock_data": use_mock_data},
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    log.info("sync_job_scheduled", cron=expression, mock=use_mock_data)
    return scheduler


async def run_worker(
    orchestrator: SyncOrchestrator,
    *,
    cron: str | None = None,
    use_mock_data: bool = False,
    run_now: bool = False,
    enabled: bool | None = None,
) -> None:
    """
    Start the scheduler and block until cancelled.

    Returns immediately when syncing is disabled.
    """
    if not (settings.sync_enabled if enabled is None else enabled):
        log.warning("sync_worker_disabled", hint="set SYNC_ENABLED=true")
        return

    scheduler = build_scheduler(orchestrator, cron=cron, use_mock_data=use_mock_data)
    scheduler.start()
    log.info("sync_worker_started")
    try:
        if run_now:
            await orchestrator.sync_current(use_mock_data=use_mock_data)
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        log.info("sync_worker_stopped")
