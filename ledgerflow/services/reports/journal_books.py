"""
LedgerFlow - Journal Books

Chronological listings of one journal type over a date range: each
transaction's header line followed by its postings. Cash receipt, cash
disbursement, general journal, accounts payable (purchases) and accounts
receivable (sales) books share this builder.
"""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.schemas.reports import DateRangeReportRequest
from ledgerflow.services.journal_modules import (
    CASH_DISBURSEMENT,
    CASH_PURCHASE,
    CASH_RECEIPTS,
    CASH_SALES,
    GENERAL_ACCOUNTING,
    JournalModule,
)
from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.reports.base import (
    ExecutionDiscipline,
    PrunePolicy,
    ReportBuildError,
    ReportBuilder,
)
from ledgerflow.services.reports.journal_queries import (
    JournalEntry,
    entries_totals,
    load_entries,
    unbalanced_receipts_exist,
)
from ledgerflow.services.reports.rendering import ReportDocument, ReportSection

RECEIPTS_BLOCKED_MESSAGE = "Report blocked: one or more receipts in the selected period are not balanced."

COLUMNS = ["Date", "No.", "Payee / Payor", "Explanation", "Account", "Account Title", "Debit", "Credit"]
COL_WIDTHS = [0.85, 0.8, 1.7, 2.1, 0.9, 2.0, 1.1, 1.1]


class JournalBookBuilder(ReportBuilder):
    """Header-then-lines listing of one journal module."""

    module: JournalModule
    title: str
    file_label: str
    params_model = DateRangeReportRequest
    discipline = ExecutionDiscipline.AFTER_RESPONSE
    prune_policy = PrunePolicy.KEEP_LATEST
    blocks_on_unbalanced_receipts = False

    async def build(self, db: AsyncSession, request: DateRangeReportRequest) -> ReportDocument:
        if self.blocks_on_unbalanced_receipts:
            await self.progress(5, "Checking receipts...")
            if await unbalanced_receipts_exist(db, self.company_id, request.start_date, request.end_date):
                raise ReportBuildError(RECEIPTS_BLOCKED_MESSAGE)

        await self.progress(15, "Loading transactions...")
        entries = await load_entries(
            db, self.module, self.company_id, request.start_date, request.end_date, request.query
        )

        await self.progress(45, "Checking balances...")
        totals = entries_totals(entries)
        self.ensure_balanced(totals)

        await self.progress(55, "Building rows...")
        rows, emphasized = self._rows(entries)
        section = ReportSection(
            columns=COLUMNS,
            rows=rows,
            totals=["", "", "", "", "", "TOTALS", totals.debit, totals.credit],
            col_widths=COL_WIDTHS,
            emphasized_rows=emphasized,
        )

        footer = [f"{len(entries)} transaction(s)"]
        if request.query and request.query.strip():
            footer.append(f"Filtered by: {request.query.strip()}")

        return ReportDocument(
            title=self.title,
            subtitle=self.module.label,
            period=f"{request.start_date.strftime('%B %d, %Y')} to {request.end_date.strftime('%B %d, %Y')}",
            sections=[section],
            orientation="landscape",
            sheet_title=self.title,
            footer_notes=footer,
        )

    def _rows(self, entries: List[JournalEntry]):
        rows = []
        emphasized = []
        for entry in entries:
            emphasized.append(len(rows))
            rows.append([
                entry.entry_date.isoformat(),
                entry.number,
                entry.party or "",
                (entry.header.explanation or "")[:60],
                "", "", "", "",
            ])
            for line in entry.lines:
                rows.append([
                    "", "", "", "",
                    line.acct_code,
                    line.acct_desc or "",
                    line.debit if line.debit > 0 else "",
                    line.credit if line.credit > 0 else "",
                ])
        return rows, emphasized

    def download_name(self, request: DateRangeReportRequest) -> str:
        return (
            f"{self.file_label}_{self.company_id}_"
            f"{request.start_date}_to_{request.end_date}.{self.extension}"
        )


class CashReceiptBookBuilder(JournalBookBuilder):
    kind = ReportKind.CASH_RECEIPT_BOOK
    module = CASH_RECEIPTS
    title = "Cash Receipt Book"
    file_label = "CashReceiptBook"
    blocks_on_unbalanced_receipts = True


class CashDisbursementBookBuilder(JournalBookBuilder):
    kind = ReportKind.CASH_DISBURSEMENT_BOOK
    module = CASH_DISBURSEMENT
    title = "Cash Disbursement Book"
    file_label = "CashDisbursementBook"


class GeneralJournalBookBuilder(JournalBookBuilder):
    kind = ReportKind.GENERAL_JOURNAL_BOOK
    module = GENERAL_ACCOUNTING
    title = "General Journal Book"
    file_label = "GeneralJournalBook"


class AccountsPayableJournalBuilder(JournalBookBuilder):
    kind = ReportKind.ACCOUNTS_PAYABLE_JOURNAL
    module = CASH_PURCHASE
    title = "Accounts Payable Journal"
    file_label = "AccountsPayableJournal"


class AccountsReceivableJournalBuilder(JournalBookBuilder):
    kind = ReportKind.ACCOUNTS_RECEIVABLE_JOURNAL
    module = CASH_SALES
    title = "Accounts Receivable Journal"
    file_label = "AccountsReceivableJournal"
