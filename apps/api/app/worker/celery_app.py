from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "mapandmingle",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.worker.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    beat_schedule={
        "sweep-expired-mingles": {
            "task": "sweep_expired_mingles",
            "schedule": float(settings.sweep_interval_seconds),
        },
        "purge-ended-mingles": {
            "task": "purge_ended_mingles",
            "schedule": 3600.0,
        },
    },
)
