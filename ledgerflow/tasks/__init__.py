"""
LedgerFlow - Background Tasks Package

Celery background tasks.
"""

from ledgerflow.tasks.report_tasks import (
    build_report_task,
    prune_expired_reports_task,
    run_async,
)

__all__ = [
    "build_report_task",
    "prune_expired_reports_task",
    "run_async",
]
