"""
LedgerFlow - Report Builders

Registry of the builder class for each report kind.
"""

from typing import Dict, Type

from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.reports.base import (
    ExecutionDiscipline,
    ReportBuildError,
    ReportBuilder,
    UnbalancedReportError,
)
from ledgerflow.services.reports.general_ledger import GeneralLedgerBuilder
from ledgerflow.services.reports.journal_books import (
    AccountsPayableJournalBuilder,
    AccountsReceivableJournalBuilder,
    CashDisbursementBookBuilder,
    CashReceiptBookBuilder,
    GeneralJournalBookBuilder,
)
from ledgerflow.services.reports.registers import CheckRegisterBuilder, ReceiptRegisterBuilder
from ledgerflow.services.reports.trial_balance import TrialBalanceBuilder

REPORT_BUILDERS: Dict[ReportKind, Type[ReportBuilder]] = {
    builder.kind: builder
    for builder in (
        GeneralLedgerBuilder,
        TrialBalanceBuilder,
        CheckRegisterBuilder,
        CashReceiptBookBuilder,
        CashDisbursementBookBuilder,
        GeneralJournalBookBuilder,
        AccountsPayableJournalBuilder,
        AccountsReceivableJournalBuilder,
        ReceiptRegisterBuilder,
    )
}


def get_builder_class(kind: ReportKind) -> Type[ReportBuilder]:
    return REPORT_BUILDERS[kind]


__all__ = [
    "REPORT_BUILDERS",
    "ExecutionDiscipline",
    "ReportBuildError",
    "ReportBuilder",
    "UnbalancedReportError",
    "get_builder_class",
]
