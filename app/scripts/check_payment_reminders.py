"""One payment reminder pass, for platform cron jobs.

Run daily (e.g. Railway schedule at 09:00 Asia/Kolkata):
    python -m app.scripts.check_payment_reminders
"""

from __future__ import annotations

import asyncio
import json
import logging

import db
from app.workers.reminder import run_reminder_pass
from config import settings

_LOGGER = logging.getLogger("app.scripts.check_payment_reminders")


async def main() -> dict:
    try:
        return await run_reminder_pass(settings)
    finally:
        await db.dispose_engine()


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL)
    _LOGGER.info("[CRON] check_payment_reminders: job started")
    report = asyncio.run(main())
    _LOGGER.info("[CRON] check_payment_reminders: job completed %s", json.dumps(report))
