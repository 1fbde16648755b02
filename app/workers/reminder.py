"""Daily payment reminder task."""

from __future__ import annotations

import asyncio
import logging

import db
from app.celery_app import celery_app
from app.services.router import EventRouter
from app.services.scheduler import ReminderScheduler
from config import settings

_LOGGER = logging.getLogger(__name__)


async def run_reminder_pass(cfg=settings, store=db) -> dict:
    """One scheduler pass with its own router; returns the JSON report."""
    router = EventRouter(cfg, store=store)
    report = await ReminderScheduler(router, cfg, store=store).run()
    return report.model_dump(mode="json")


async def _run_and_dispose() -> dict:
    try:
        return await run_reminder_pass()
    finally:
        # each asyncio.run() gets a fresh loop; pooled connections can't outlive it
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.check_payment_reminders", bind=True)
def check_payment_reminders(self):  # noqa: D401
    """Remind pending members of groups whose draw is 1-3 days away."""
    report = asyncio.run(_run_and_dispose())
    _LOGGER.info(
        "check_payment_reminders: %d dispatched, %d skipped, %d failed",
        len(report["dispatched"]), len(report["skipped"]), len(report["failed"]),
    )
    return report
