"""
LedgerFlow - FastAPI Dependencies

Shared dependencies for the routers:
1. Service objects bound to the request session
2. The report job service (job store + session factory for builders)
3. Journal module lookup from the path
"""

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgerflow.database import get_async_session, get_session_factory
from ledgerflow.services.approval_service import ApprovalService
from ledgerflow.services.job_status_store import JobStatusStore, get_job_store
from ledgerflow.services.journal_modules import JournalModule, get_journal_module
from ledgerflow.services.journal_service import JournalService
from ledgerflow.services.report_jobs import ReportJobService


def get_report_job_service(
    store: JobStatusStore = Depends(get_job_store),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ReportJobService:
    return ReportJobService(store, session_factory)


def get_journal_service(db: AsyncSession = Depends(get_async_session)) -> JournalService:
    return JournalService(db)


def get_approval_service(db: AsyncSession = Depends(get_async_session)) -> ApprovalService:
    return ApprovalService(db)


def get_module(module: str = Path(..., description="Journal module key, e.g. cash_receipts")) -> JournalModule:
    """Resolve the ``{module}`` path segment; unknown keys answer 404."""
    return get_journal_module(module)
