"""
LedgerFlow - General Ledger Report

Per account in the requested range: opening balance, every Active posting
of the period from all five journals (tagged by source), a running
balance and the closing balance.
"""

from decimal import Decimal
from itertools import groupby
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.schemas.reports import AccountRangeReportRequest
from ledgerflow.services.balance_engine import ZERO, round_money
from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.reports.base import (
    NO_ACCOUNTS_MESSAGE,
    ExecutionDiscipline,
    PrunePolicy,
    ReportBuildError,
    ReportBuilder,
)
from ledgerflow.services.reports.ledger_queries import (
    LedgerLine,
    ledger_totals,
    load_accounts,
    opening_positions,
    period_lines,
)
from ledgerflow.services.reports.rendering import ReportDocument, ReportSection

COLUMNS = ["Date", "Src", "Ref No.", "Payee / Payor", "Explanation", "Debit", "Credit", "Balance"]
LANDSCAPE_WIDTHS = [0.9, 0.4, 0.9, 2.0, 3.2, 1.1, 1.1, 1.2]
PORTRAIT_WIDTHS = [0.75, 0.35, 0.7, 1.3, 1.6, 0.85, 0.85, 0.85]


class GeneralLedgerBuilder(ReportBuilder):
    kind = ReportKind.GENERAL_LEDGER
    params_model = AccountRangeReportRequest
    discipline = ExecutionDiscipline.INLINE
    prune_policy = PrunePolicy.BY_AGE

    async def build(self, db: AsyncSession, request: AccountRangeReportRequest) -> ReportDocument:
        low, high = request.account_bounds
        accounts = await load_accounts(db, self.company_id, low, high)
        if not accounts:
            raise ReportBuildError(NO_ACCOUNTS_MESSAGE)

        await self.progress(10, "Checking balances...")
        self.ensure_balanced(await ledger_totals(db, self.company_id, request.start_date, request.end_date))

        await self.progress(20, "Loading opening balances...")
        openings = await opening_positions(
            db, self.company_id, accounts, request.start_date, pl_year_to_date=False
        )

        await self.progress(40, "Loading postings...")
        lines = await period_lines(db, self.company_id, request.start_date, request.end_date, low, high)
        by_account = {code: list(group) for code, group in groupby(lines, key=lambda l: l.acct_code)}

        await self.progress(55, "Computing running balances...")
        widths = LANDSCAPE_WIDTHS if request.orientation.value == "landscape" else PORTRAIT_WIDTHS
        sections: List[ReportSection] = []
        for account in accounts:
            opening = openings.get(account.acct_code, ZERO)
            postings = by_account.get(account.acct_code, [])
            if not postings and opening == ZERO:
                continue
            sections.append(self._account_section(account.acct_code, account.acct_desc, opening, postings, widths))

        return ReportDocument(
            title="General Ledger",
            subtitle=f"Accounts {low} to {high}",
            period=f"{request.start_date.strftime('%B %d, %Y')} to {request.end_date.strftime('%B %d, %Y')}",
            sections=sections,
            orientation=request.orientation.value,
            sheet_title="General Ledger",
            footer_notes=[] if sections else ["No postings for the selected accounts and period."],
        )

    def _account_section(
        self,
        code: str,
        description: str,
        opening: Decimal,
        postings: List[LedgerLine],
        widths: List[float],
    ) -> ReportSection:
        balance = opening
        total_debit = ZERO
        total_credit = ZERO
        rows = []
        for line in postings:
            balance = round_money(balance + line.debit - line.credit)
            total_debit += line.debit
            total_credit += line.credit
            rows.append([
                line.entry_date.isoformat(),
                line.category,
                line.number,
                line.party or "",
                (line.explanation or "")[:60],
                line.debit if line.debit > 0 else "",
                line.credit if line.credit > 0 else "",
                balance,
            ])

        return ReportSection(
            heading=f"{code} - {description}",
            columns=COLUMNS,
            rows=rows,
            notes_before=[f"Beginning Balance: {opening:,.2f}"],
            totals=["", "", "", "", "Totals", round_money(total_debit), round_money(total_credit), balance],
            col_widths=widths,
        )

    def download_name(self, request: AccountRangeReportRequest) -> str:
        low, high = request.account_bounds
        return f"GeneralLedger_{low}-{high}_{request.start_date}_to_{request.end_date}.{self.extension}"
