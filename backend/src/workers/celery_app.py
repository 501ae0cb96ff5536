"""Celery application and beat schedule for the retention sweeps.

Start a worker with the embedded beat scheduler:

    celery -A workers.celery_app worker --beat --loglevel=info

Intervals come from settings (EXPIRATION_SWEEP_INTERVAL_HOURS, ...). Every
sweep is also enqueued once when a worker comes up, so a freshly started
service does not wait a full interval for its first pass.
"""

import logging
from datetime import timedelta
from typing import Any, Dict

from celery import Celery
from celery.signals import setup_logging, worker_ready

from config import Settings, get_settings
from observability.logging_config import configure_logging

logger = logging.getLogger(__name__)

# task name -> settings attribute holding its interval in hours
SWEEP_TASKS = {
    "retention.expiration_sweep": "EXPIRATION_SWEEP_INTERVAL_HOURS",
    "retention.file_request_purge": "FILE_REQUEST_SWEEP_INTERVAL_HOURS",
    "retention.account_purge": "ACCOUNT_PURGE_SWEEP_INTERVAL_HOURS",
    "retention.audit_purge": "AUDIT_PURGE_SWEEP_INTERVAL_HOURS",
}


def build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    """One beat entry per sweep.

    A run that is not picked up before the next one is due expires instead
    of piling up behind it.
    """
    schedule = {}
    for task_name, interval_setting in SWEEP_TASKS.items():
        interval = timedelta(hours=getattr(settings, interval_setting))
        schedule[task_name.replace(".", "-").replace("_", "-")] = {
            'task': task_name,
            'schedule': interval,
            'options': {
                'expires': int(interval.total_seconds()),
            },
        }
    return schedule


def create_celery_app(settings: Settings) -> Celery:
    app = Celery(
        "fileshare",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["retention.tasks"],
    )
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )
    app.conf.beat_schedule = build_beat_schedule(settings)
    return app


celery_app = create_celery_app(get_settings())


@setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)


@worker_ready.connect
def run_sweeps_on_startup(sender=None, **kwargs) -> None:
    """Enqueue every sweep once when the worker is ready."""
    for task_name in SWEEP_TASKS:
        celery_app.send_task(task_name)
        logger.info(f"Startup run of {task_name} enqueued")
