"""Daily payment reminders for groups whose draw is 1, 2 or 3 days away.

One pass:

    Idle -> ComputingWindows -> PerGroupDispatch(group...) -> Idle

Each matching group gets one `payment_reminder` event through the router.
A failing group is logged and recorded in the report; the pass carries on
with the next one and always returns to Idle. `run()` never raises.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import db
from app.types.notification_contract import REMINDER_OFFSETS, ReminderRunReport, ReminderWindow

_LOGGER = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    COMPUTING_WINDOWS = "computing_windows"
    PER_GROUP_DISPATCH = "per_group_dispatch"


def compute_windows(today: date) -> List[ReminderWindow]:
    return [ReminderWindow(offset=o, target_date=today + timedelta(days=o)) for o in REMINDER_OFFSETS]


def local_today(tz_name: str) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None


class ReminderScheduler:
    def __init__(self, router: Any, settings: Any, store: Any = db):
        self.router = router
        self.store = store
        self.timezone = settings.REMINDER_TIMEZONE
        self.dedup = settings.REMINDER_DEDUP_ENABLED
        self.state = SchedulerState.IDLE

    async def run(self, today: Optional[date] = None) -> ReminderRunReport:
        # "today" is fixed once per pass so every window uses the same base date
        today = today or local_today(self.timezone)
        report = ReminderRunReport(today=today)
        try:
            self.state = SchedulerState.COMPUTING_WINDOWS
            windows = compute_windows(today)
            report.dates_checked = [w.target_date for w in windows]
            _LOGGER.info("Reminder pass for %s: checking %s", today, report.dates_checked)

            try:
                groups = await self.store.fetch_groups_by_draw_dates(report.dates_checked)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.error("Reminder pass aborted, could not fetch groups: %s", exc)
                report.error = str(exc)
                return report

            self.state = SchedulerState.PER_GROUP_DISPATCH
            by_date: Dict[date, ReminderWindow] = {w.target_date: w for w in windows}
            for group in groups:
                window = by_date.get(_as_date(group.get("draw_date")))
                if window is None:
                    continue
                await self._remind(group, window, today, report)
        finally:
            self.state = SchedulerState.IDLE

        _LOGGER.info(
            "Reminder pass done: %d dispatched, %d skipped, %d failed",
            len(report.dispatched), len(report.skipped), len(report.failed),
        )
        return report

    async def _remind(
        self, group: dict, window: ReminderWindow, today: date, report: ReminderRunReport
    ) -> None:
        group_id = str(group.get("id"))
        key = f"{group_id}:{window.offset}"
        claimed = False
        try:
            if self.dedup:
                claimed = await self.store.claim_reminder_slot(group_id, window.offset, today)
                if not claimed:
                    _LOGGER.info("Reminder %s already sent on %s, skipping", key, today)
                    report.skipped.append(key)
                    return

            result = await self.router.dispatch(
                "payment_reminder",
                {
                    "groupId": group_id,
                    "groupName": group.get("name"),
                    "amount": group.get("monthly_amount"),
                    "drawDate": window.target_date.isoformat(),
                    "daysUntilDraw": window.offset,
                },
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Reminder for group %s (offset %d) failed: %s", group_id, window.offset, exc)
            report.failed[key] = str(exc) or exc.__class__.__name__
            if claimed:
                await self._release(group_id, window.offset, today)
            return

        report.dispatched.append(key)
        report.deliveries_ok += result.counts.ok
        report.deliveries_error += result.counts.error

    async def _release(self, group_id: str, offset: int, today: date) -> None:
        try:
            await self.store.release_reminder_slot(group_id, offset, today)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not release reminder marker %s:%d: %s", group_id, offset, exc)
