"""
Celery configuration for background tasks
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

# Create Celery instance
celery_app = Celery(
    "agrupacion",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.modules.members.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Result backend settings
    result_expires=3600,  # 1 hour

    task_routes={
        "app.modules.members.tasks.*": {"queue": "members"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "mark-overdue-dues": {
            "task": "app.modules.members.tasks.mark_overdue_dues",
            "schedule": crontab(hour=0, minute=15),  # Daily, local time
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
