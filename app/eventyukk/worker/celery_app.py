"""
Celery worker configuration for the periodic event sweep.
"""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from eventyukk.constant_file import celery_broker_url, celery_result_backend, sweep_interval_seconds
from eventyukk.logging_config import setup_logging

celery_app = Celery(
    "eventyukk_worker",
    broker=celery_broker_url,
    backend=celery_result_backend,
    include=["eventyukk.worker.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Jakarta",
    enable_utc=False,
    task_track_started=True,
    task_time_limit=600,
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    beat_schedule={
        "sweep-ended-events": {
            "task": "eventyukk.worker.tasks.sweep_ended_events",
            "schedule": float(sweep_interval_seconds),  # hourly by default
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()


if __name__ == "__main__":
    celery_app.start()
