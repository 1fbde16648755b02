"""Celery application instance shared across the backend.

Start a worker (with the beat scheduler embedded) with:
    celery -A app.celery_app worker -B -Q reminder -l info --concurrency=2
"""

from celery import Celery
from celery.schedules import crontab

from config import settings

celery_app = Celery("bhishi_notifications", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_default_retry_delay = 30  # seconds
celery_app.conf.timezone = settings.REMINDER_TIMEZONE

celery_app.conf.task_routes = {
    "app.workers.reminder.check_payment_reminders": {"queue": "reminder"},
}

# Beat schedule: one payment reminder pass per day, local time
celery_app.conf.beat_schedule = {
    "check-payment-reminders": {
        "task": "app.workers.reminder.check_payment_reminders",
        "schedule": crontab(hour=settings.REMINDER_HOUR, minute=settings.REMINDER_MINUTE),
    }
}

# --- Ensure tasks are registered ---
import app.workers.reminder  # noqa: E402,F401
