import pytest, os
from datetime import timedelta

from app.workers import reminder as reminder_worker
from app.services.scheduler import local_today
import db


@pytest.mark.asyncio
async def test_run_reminder_pass_reports(settings, store):
    tomorrow = local_today(settings.REMINDER_TIMEZONE) + timedelta(days=1)
    store.add_group("g1", name="Office Bhishi", monthly_amount=5000, draw_date=tomorrow)
    # everyone has paid, so nothing goes out to Expo
    store.add_member("g1", user_id="u1", name="Asha", status="paid", tokens=["tok-a"])

    report = await reminder_worker.run_reminder_pass(settings, store=store)

    assert report["dispatched"] == ["g1:1"]
    assert report["dates_checked"][0] == tomorrow.isoformat()
    assert report["failed"] == {}


def test_celery_task_runs_one_pass(monkeypatch):
    calls = []

    async def fake_pass(*args, **kwargs):
        calls.append(args)
        return {"dispatched": ["g1:1"], "skipped": [], "failed": {}}

    async def fake_dispose():
        calls.append("disposed")

    monkeypatch.setattr(reminder_worker, "run_reminder_pass", fake_pass)
    monkeypatch.setattr(db, "dispose_engine", fake_dispose)

    result = reminder_worker.check_payment_reminders.apply(args=()).get()

    assert result["dispatched"] == ["g1:1"]
    assert calls == [(), "disposed"]


def test_beat_schedule_is_registered():
    from app.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["check-payment-reminders"]
    assert entry["task"] == "app.workers.reminder.check_payment_reminders"
    assert "app.workers.reminder.check_payment_reminders" in celery_app.tasks


@pytest.mark.asyncio
async def test_reminder_slot_claim_against_database():
    # Real Postgres only; the in-memory store covers the logic elsewhere
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set for reminder dedup test")

    await db.db.create_all()
    day = local_today("Asia/Kolkata")
    try:
        assert await db.claim_reminder_slot("test-group", 1, day) is True
        assert await db.claim_reminder_slot("test-group", 1, day) is False
    finally:
        await db.release_reminder_slot("test-group", 1, day)
        await db.dispose_engine()
