"""
Celery: worker de notificaciones del outbox
"""
from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "mesa360",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.modules.email.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Bogota",
    enable_utc=True,
    # Un evento no se pierde si el worker muere a mitad del envío
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_default_rate_limit="100/m",
    result_expires=3600,
    task_routes={
        "app.modules.email.tasks.*": {"queue": "email"},
    },
    beat_schedule={
        "retry-pending-outbox-events": {
            "task": "app.modules.email.tasks.retry_pending_outbox_events",
            "schedule": settings.OUTBOX_RETRY_INTERVAL_SECONDS,
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
