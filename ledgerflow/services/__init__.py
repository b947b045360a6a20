"""
LedgerFlow - Services Package

Business logic services.
"""

from ledgerflow.services.approval_service import ApprovalService
from ledgerflow.services.balance_engine import BalanceEngine, BalanceTotals
from ledgerflow.services.job_status_store import JobStatusStore, ReportKind
from ledgerflow.services.journal_service import JournalService
from ledgerflow.services.report_jobs import ReportJobService

__all__ = [
    "ApprovalService",
    "BalanceEngine",
    "BalanceTotals",
    "JobStatusStore",
    "ReportKind",
    "JournalService",
    "ReportJobService",
]
