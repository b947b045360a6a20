"""
LedgerFlow - Report Tasks

Celery entry points for the report pipeline. A worker rebuilds the builder
from the seeded ticket state, so only the report kind and ticket travel
through the broker.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from ledgerflow.database import async_session_maker, engine
from ledgerflow.services.job_status_store import JobStatus, JobStatusStore, ReportKind
from ledgerflow.services.report_jobs import ReportJobService
from ledgerflow.services.reports.base import prune_expired_artifacts

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ===========================================
# REPORT BUILDS
# ===========================================

@shared_task(name='ledgerflow.tasks.report_tasks.build_report_task')
def build_report_task(kind: str, ticket: str) -> Dict[str, Any]:
    """Build one queued report ticket."""
    return run_async(_build_report(ReportKind(kind), ticket))


async def _build_report(kind: ReportKind, ticket: str) -> Dict[str, Any]:
    store = JobStatusStore()
    try:
        state = await store.get(kind, ticket)
        if state is None:
            logger.warning(f"Ticket {ticket} ({kind.value}) expired before a worker picked it up")
            return {"ticket": ticket, "status": "missing"}
        if state.get("status") != JobStatus.QUEUED.value:
            logger.info(f"Ticket {ticket} already {state.get('status')}; skipping")
            return {"ticket": ticket, "status": state.get("status")}

        service = ReportJobService(store, async_session_maker)
        builder = service.make_builder(
            kind,
            ticket,
            state.get("params") or {},
            state.get("company_id"),
            state.get("format") or "pdf",
        )
        await builder.run()

        final = await store.get(kind, ticket) or {}
        return {"ticket": ticket, "status": final.get("status")}
    finally:
        await store.close()
        # Pooled connections belong to this task's event loop
        await engine.dispose()


# ===========================================
# STORAGE UPKEEP
# ===========================================

@shared_task(name='ledgerflow.tasks.report_tasks.prune_expired_reports_task')
def prune_expired_reports_task() -> Dict[str, Any]:
    """Delete report artifacts past the retention window."""
    removed = prune_expired_artifacts()
    return {"removed": removed}
