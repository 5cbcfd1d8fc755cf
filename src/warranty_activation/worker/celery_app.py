from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from warranty_activation.core.config import settings


def make_celery() -> Celery:
    app = Celery("warranty_activation", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_always_eager=settings.environment in {"dev", "test"},
        task_eager_propagates=True,
        task_track_started=True,
        beat_schedule={
            "reconcile-invoices-hourly": {
                "task": "reconcile_invoices",
                "schedule": crontab(minute=0),
            },
        },
    )
    app.autodiscover_tasks(["warranty_activation.worker"])
    return app


celery_app = make_celery()
