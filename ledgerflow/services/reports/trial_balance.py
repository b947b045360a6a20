"""
LedgerFlow - Trial Balance Report

Beginning balance, period debit and credit, and ending balance per
account, with retained earnings rolled forward by prior years' income.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.config import settings
from ledgerflow.models.reference import AccountCode
from ledgerflow.schemas.reports import FinancialStatementFilter, TrialBalanceRequest
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
    RETAINED_EARNINGS_CODE,
    is_profit_and_loss,
    ledger_totals,
    load_accounts,
    movement_totals,
    opening_positions,
    retained_earnings_position,
)
from ledgerflow.services.reports.rendering import ReportDocument, ReportSection

COLUMNS = ["Account Code", "Account Title", "Beginning", "Debit", "Credit", "Ending"]
LANDSCAPE_WIDTHS = [1.2, 4.0, 1.4, 1.3, 1.3, 1.4]
PORTRAIT_WIDTHS = [0.9, 2.4, 1.0, 0.95, 0.95, 1.0]

FS_LABELS = {
    FinancialStatementFilter.ALL: "All accounts",
    FinancialStatementFilter.ACT: "Active accounts",
    FinancialStatementFilter.BS: "Balance sheet accounts",
    FinancialStatementFilter.IS: "Income statement accounts",
}


def matches_fs(account: AccountCode, fs: FinancialStatementFilter) -> bool:
    if fs == FinancialStatementFilter.ACT:
        return not account.exclude
    if fs == FinancialStatementFilter.BS:
        return not is_profit_and_loss(account)
    if fs == FinancialStatementFilter.IS:
        return is_profit_and_loss(account)
    return True


class TrialBalanceBuilder(ReportBuilder):
    kind = ReportKind.TRIAL_BALANCE
    params_model = TrialBalanceRequest
    discipline = ExecutionDiscipline.AFTER_RESPONSE
    prune_policy = PrunePolicy.BY_AGE

    async def build(self, db: AsyncSession, request: TrialBalanceRequest) -> ReportDocument:
        low, high = request.account_bounds
        accounts = [
            a for a in await load_accounts(db, self.company_id, low, high)
            if matches_fs(a, request.fs)
        ]
        if not accounts:
            raise ReportBuildError(NO_ACCOUNTS_MESSAGE)

        await self.progress(10, "Checking balances...")
        self.ensure_balanced(await ledger_totals(db, self.company_id, request.start_date, request.end_date))

        await self.progress(25, "Computing beginning balances...")
        openings = await opening_positions(db, self.company_id, accounts, request.start_date)

        await self.progress(45, "Summarizing period activity...")
        period = await movement_totals(db, self.company_id, request.start_date, request.end_date, low, high)

        retained_ending = None
        if request.end_date > settings.opening_balance_as_of and any(
            a.acct_code == RETAINED_EARNINGS_CODE for a in accounts
        ):
            retained_ending = await retained_earnings_position(
                db, self.company_id, request.end_date.year, request.end_date
            )

        await self.progress(60, "Building rows...")
        rows = []
        sum_opening = sum_debit = sum_credit = sum_ending = ZERO
        for account in accounts:
            code = account.acct_code
            opening = openings.get(code, ZERO)
            debit, credit = period.get(code, (ZERO, ZERO))
            if code == RETAINED_EARNINGS_CODE and retained_ending is not None:
                ending = retained_ending
            else:
                ending = round_money(opening + debit - credit)
            if opening == ZERO and debit == ZERO and credit == ZERO and ending == ZERO:
                continue
            rows.append([code, account.acct_desc, opening, debit, credit, ending])
            sum_opening += opening
            sum_debit += debit
            sum_credit += credit
            sum_ending += ending

        widths = LANDSCAPE_WIDTHS if request.orientation.value == "landscape" else PORTRAIT_WIDTHS
        section = ReportSection(
            columns=COLUMNS,
            rows=rows,
            totals=[
                "", "TOTALS",
                round_money(sum_opening), round_money(sum_debit),
                round_money(sum_credit), round_money(sum_ending),
            ],
            col_widths=widths,
        )
        return ReportDocument(
            title="Trial Balance",
            subtitle=f"Accounts {low} to {high} ({FS_LABELS[request.fs]})",
            period=f"{request.start_date.strftime('%B %d, %Y')} to {request.end_date.strftime('%B %d, %Y')}",
            sections=[section],
            orientation=request.orientation.value,
            sheet_title="Trial Balance",
            footer_notes=["Balances are shown debit positive, credit negative."],
        )

    def download_name(self, request: TrialBalanceRequest) -> str:
        low, high = request.account_bounds
        return f"TrialBalance_{low}-{high}_{request.start_date}_to_{request.end_date}.{self.extension}"
