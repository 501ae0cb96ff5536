"""Background workers for the retention sweeps.

The Celery application lives in ``workers.celery_app``; sweep tasks are
defined in ``retention.tasks``.
"""
