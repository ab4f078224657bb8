"""Celery application for scheduled work."""

from celery import Celery
from celery.schedules import crontab

from .config import settings

celery_app = Celery(
    "personachat",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["personachat.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3000,  # a tick must finish well before the next one
    task_soft_time_limit=2700,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

# Periodic tasks (Celery Beat schedule)
celery_app.conf.beat_schedule = {
    # Proactive persona messages every hour on the hour
    "dispatch-persona-messages": {
        "task": "personachat.tasks.dispatch_persona_messages",
        "schedule": crontab(minute=0),
    },
    # Quota reset at local midnight
    "reset-api-usage": {
        "task": "personachat.tasks.reset_api_usage",
        "schedule": crontab(hour=0, minute=0),
    },
}

if __name__ == "__main__":
    celery_app.start()
