"""
LedgerFlow - Monthly Registers

One line per transaction for a calendar month:
- Check Register: disbursements with payee, bank and check number
- Receipt Register: receipts with customer, bank and official receipt number
"""

from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.schemas.reports import PeriodReportRequest
from ledgerflow.services.balance_engine import ZERO, round_money
from ledgerflow.services.journal_modules import CASH_DISBURSEMENT, CASH_RECEIPTS, JournalModule
from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.reports.base import (
    ExecutionDiscipline,
    PrunePolicy,
    ReportBuildError,
    ReportBuilder,
)
from ledgerflow.services.reports.journal_books import RECEIPTS_BLOCKED_MESSAGE
from ledgerflow.services.reports.journal_queries import (
    JournalEntry,
    entries_totals,
    load_entries,
    month_bounds,
    unbalanced_receipts_exist,
)
from ledgerflow.services.reports.ledger_queries import natural_key
from ledgerflow.services.reports.rendering import ReportDocument, ReportSection


class RegisterBuilder(ReportBuilder):
    """Monthly one-line-per-transaction listing."""

    module: JournalModule
    title: str
    file_label: str
    columns: List[str]
    col_widths: List[float]
    params_model = PeriodReportRequest
    discipline = ExecutionDiscipline.AFTER_RESPONSE
    prune_policy = PrunePolicy.KEEP_LATEST
    blocks_on_unbalanced_receipts = False
    order_by_number = False

    def row_for(self, entry: JournalEntry) -> list:
        raise NotImplementedError

    async def build(self, db: AsyncSession, request: PeriodReportRequest) -> ReportDocument:
        start, end = month_bounds(request.year, request.month)

        if self.blocks_on_unbalanced_receipts:
            await self.progress(5, "Checking receipts...")
            if await unbalanced_receipts_exist(db, self.company_id, start, end):
                raise ReportBuildError(RECEIPTS_BLOCKED_MESSAGE)

        await self.progress(15, "Loading transactions...")
        entries = await load_entries(db, self.module, self.company_id, start, end, request.query)
        if self.order_by_number:
            entries.sort(key=lambda e: natural_key(e.number))

        await self.progress(45, "Checking balances...")
        self.ensure_balanced(entries_totals(entries))

        await self.progress(55, "Building rows...")
        rows = [self.row_for(entry) for entry in entries]
        amount_total = round_money(sum(
            (Decimal(str(getattr(e.header, self.module.amount_field) or 0)) for e in entries),
            ZERO,
        ))
        totals = [""] * (len(self.columns) - 2) + ["TOTAL", amount_total]

        return ReportDocument(
            title=self.title,
            subtitle=self.module.label,
            period=start.strftime("%B %Y"),
            sections=[ReportSection(
                columns=self.columns,
                rows=rows,
                totals=totals,
                col_widths=self.col_widths,
            )],
            orientation="landscape",
            sheet_title=self.title,
            footer_notes=[f"{len(entries)} transaction(s)"],
        )

    def download_name(self, request: PeriodReportRequest) -> str:
        return f"{self.file_label}_{self.company_id}_{request.year}-{request.month:02d}.{self.extension}"


class CheckRegisterBuilder(RegisterBuilder):
    kind = ReportKind.CHECK_REGISTER
    module = CASH_DISBURSEMENT
    title = "Check Register"
    file_label = "CheckRegister"
    columns = ["Date", "CD No.", "Check No.", "Payee", "Bank", "Explanation", "Amount"]
    col_widths = [0.9, 0.9, 1.1, 2.3, 1.8, 2.4, 1.2]
    order_by_number = True

    def row_for(self, entry: JournalEntry) -> list:
        header = entry.header
        return [
            entry.entry_date.isoformat(),
            entry.number,
            header.check_ref_no or "",
            entry.party or header.vend_id or "",
            entry.bank_name or header.bank_id or "",
            (header.explanation or "")[:60],
            round_money(header.disburse_amount),
        ]


class ReceiptRegisterBuilder(RegisterBuilder):
    kind = ReportKind.RECEIPT_REGISTER
    module = CASH_RECEIPTS
    title = "Receipt Register"
    file_label = "ReceiptRegister"
    columns = ["Date", "CR No.", "OR No.", "Customer", "Bank", "Explanation", "Amount"]
    col_widths = [0.9, 0.9, 1.1, 2.3, 1.8, 2.4, 1.2]
    blocks_on_unbalanced_receipts = True

    def row_for(self, entry: JournalEntry) -> list:
        header = entry.header
        return [
            entry.entry_date.isoformat(),
            entry.number,
            header.collection_receipt or "",
            entry.party or header.cust_id or "",
            entry.bank_name or header.bank_id or "",
            (header.explanation or "")[:60],
            round_money(header.receipt_amount),
        ]
