"""
LedgerFlow - Celery Worker

Used when ``report_executor`` is ``celery``: report builds run on the
``reports`` queue and beat sweeps expired artifacts nightly. The broker
and result backend share the job store's Redis.
"""

from celery import Celery
from celery.schedules import crontab

from ledgerflow.config import settings


celery_app = Celery(
    'ledgerflow',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['ledgerflow.tasks.report_tasks'],
)

celery_app.conf.update(
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    timezone='UTC',
    enable_utc=True,
    # A lost worker must not lose the ticket: redeliver unacknowledged builds
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_soft_time_limit=14 * 60,
    task_time_limit=15 * 60,
    worker_prefetch_multiplier=1,
    # Ticket state lives in the job store; Celery results are only for ops
    result_expires=3600,
    task_routes={'ledgerflow.tasks.report_tasks.*': {'queue': 'reports'}},
    beat_schedule={
        'prune-expired-reports': {
            'task': 'ledgerflow.tasks.report_tasks.prune_expired_reports_task',
            'schedule': crontab(hour=2, minute=0),
        },
    },
)
