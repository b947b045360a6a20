"""
LedgerFlow - Ledger Queries

Read-only queries the report builders share. Every query runs over the
five journal modules, keeps only Active headers and is filtered by
company on the header, the detail and every joined reference table.
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, null
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.config import settings
from ledgerflow.models.reference import AccountCode, BeginningBalance, Customer, Vendor
from ledgerflow.services.balance_engine import BalanceTotals, ZERO, compute_totals, round_money
from ledgerflow.services.journal_modules import JOURNAL_MODULES, JournalModule

RETAINED_EARNINGS_CODE = "4031"
RETAINED_EARNINGS_NUMBER = 4031

_NUMERIC_PREFIX = re.compile(r"^\s*(\d+)")
_PROFIT_AND_LOSS_PREFIXES = ("IS", "P&L", "PROFIT")


@dataclass
class LedgerLine:
    """One detail line with the header context a report prints next to it."""
    acct_code: str
    entry_date: date
    category: str
    number: str
    party: Optional[str]
    explanation: Optional[str]
    debit: Decimal
    credit: Decimal
    transaction_id: int
    detail_id: int


# =============================================================================
# ACCOUNT HELPERS
# =============================================================================

def numeric_prefix(code: Optional[str]) -> Optional[int]:
    match = _NUMERIC_PREFIX.match(code or "")
    return int(match.group(1)) if match else None


def natural_key(code: str) -> Tuple[int, str]:
    """Sort key: numeric prefix first, then the full code."""
    prefix = numeric_prefix(code)
    return (prefix if prefix is not None else 10**12, code or "")


def account_number(account: AccountCode) -> Optional[int]:
    if account.acct_number is not None:
        return account.acct_number
    return numeric_prefix(account.acct_code)


def is_profit_and_loss(account: AccountCode) -> bool:
    """
    Income statement accounts reset each fiscal year.

    Retained earnings is always a balance sheet account. Otherwise the fs or
    account type bucket decides, and accounts numbered above retained
    earnings count as P&L.
    """
    if account.acct_code == RETAINED_EARNINGS_CODE:
        return False
    for bucket in (account.fs, account.acct_type):
        if bucket and bucket.strip().upper().startswith(_PROFIT_AND_LOSS_PREFIXES):
            return True
    number = account_number(account)
    return number is not None and number > RETAINED_EARNINGS_NUMBER


def _header_filter(module: JournalModule, company_id: int, start: date, end: date):
    header = module.header
    detail = module.detail
    date_col = module.date_column()
    return and_(
        header.company_id == company_id,
        detail.company_id == company_id,
        header.is_cancel == module.active_flag(),
        date_col >= start,
        date_col <= end,
    )


def _range_filter(module: JournalModule, low: Optional[str], high: Optional[str]):
    detail = module.detail
    conditions = []
    if low is not None:
        conditions.append(detail.acct_code >= low)
    if high is not None:
        conditions.append(detail.acct_code <= high)
    return conditions


# =============================================================================
# QUERIES
# =============================================================================

async def load_accounts(
    db: AsyncSession,
    company_id: int,
    low: Optional[str] = None,
    high: Optional[str] = None,
) -> List[AccountCode]:
    """Active accounts of the company in [low, high], naturally sorted."""
    conditions = [AccountCode.company_id == company_id, AccountCode.active_flag.is_(True)]
    if low is not None:
        conditions.append(AccountCode.acct_code >= low)
    if high is not None:
        conditions.append(AccountCode.acct_code <= high)
    result = await db.execute(select(AccountCode).where(and_(*conditions)))
    return sorted(result.scalars().all(), key=lambda a: natural_key(a.acct_code))


async def opening_balances(db: AsyncSession, company_id: int, as_of: Optional[date] = None) -> Dict[str, Decimal]:
    """Beginning balance snapshot per account (debit positive)."""
    as_of = as_of or settings.opening_balance_as_of
    result = await db.execute(
        select(BeginningBalance.account_code, func.sum(BeginningBalance.amount))
        .where(and_(
            BeginningBalance.company_id == company_id,
            BeginningBalance.as_of == as_of,
        ))
        .group_by(BeginningBalance.account_code)
    )
    return {code: round_money(amount) for code, amount in result.all()}


async def movement_totals(
    db: AsyncSession,
    company_id: int,
    start: date,
    end: date,
    low: Optional[str] = None,
    high: Optional[str] = None,
) -> Dict[str, Tuple[Decimal, Decimal]]:
    """(debit, credit) per account across every journal for [start, end]."""
    totals: Dict[str, Tuple[Decimal, Decimal]] = {}
    if end < start:
        return totals

    for module in JOURNAL_MODULES.values():
        detail = module.detail
        result = await db.execute(
            select(
                detail.acct_code,
                func.coalesce(func.sum(detail.debit), 0),
                func.coalesce(func.sum(detail.credit), 0),
            )
            .join(module.header, module.header.id == detail.transaction_id)
            .where(and_(_header_filter(module, company_id, start, end), *_range_filter(module, low, high)))
            .group_by(detail.acct_code)
        )
        for code, debit, credit in result.all():
            prev_debit, prev_credit = totals.get(code, (ZERO, ZERO))
            totals[code] = (
                round_money(prev_debit + Decimal(str(debit))),
                round_money(prev_credit + Decimal(str(credit))),
            )
    return totals


def net_of(totals: Dict[str, Tuple[Decimal, Decimal]], code: str) -> Decimal:
    debit, credit = totals.get(code, (ZERO, ZERO))
    return debit - credit


async def ledger_totals(db: AsyncSession, company_id: int, start: date, end: date) -> BalanceTotals:
    """Debit and credit of every Active posting in the period, all accounts."""
    totals = await movement_totals(db, company_id, start, end)
    return compute_totals(totals.values())


def _party_join(module: JournalModule):
    """(name column, onclause, target) for the module's counterparty table."""
    header = module.header
    if module.party == "vendor":
        return Vendor.vend_name, and_(
            Vendor.company_id == header.company_id,
            Vendor.vend_code == module.party_column(),
        ), Vendor
    if module.party == "customer":
        return Customer.cust_name, and_(
            Customer.company_id == header.company_id,
            Customer.cust_id == module.party_column(),
        ), Customer
    return None


async def period_lines(
    db: AsyncSession,
    company_id: int,
    start: date,
    end: date,
    low: Optional[str] = None,
    high: Optional[str] = None,
) -> List[LedgerLine]:
    """Every Active posting in the period, tagged with its source journal."""
    lines: List[LedgerLine] = []
    for module in JOURNAL_MODULES.values():
        header = module.header
        detail = module.detail
        party = _party_join(module)
        party_name = party[0] if party else null()

        stmt = (
            select(
                detail.acct_code,
                module.date_column(),
                module.number_column(),
                party_name,
                header.explanation,
                detail.debit,
                detail.credit,
                header.id,
                detail.id,
            )
            .select_from(detail)
            .join(header, header.id == detail.transaction_id)
        )
        if party:
            stmt = stmt.outerjoin(party[2], party[1])
        stmt = stmt.where(and_(_header_filter(module, company_id, start, end), *_range_filter(module, low, high)))

        result = await db.execute(stmt)
        for row in result.all():
            lines.append(LedgerLine(
                acct_code=row[0],
                entry_date=row[1],
                category=module.category,
                number=str(row[2]),
                party=row[3],
                explanation=row[4],
                debit=round_money(row[5]),
                credit=round_money(row[6]),
                transaction_id=row[7],
                detail_id=row[8],
            ))

    lines.sort(key=lambda l: (natural_key(l.acct_code), l.entry_date, l.category, natural_key(l.number), l.detail_id))
    return lines


# =============================================================================
# POSITIONS
# =============================================================================

async def retained_earnings_position(
    db: AsyncSession,
    company_id: int,
    year: int,
    through: date,
    baseline: Optional[Dict[str, Decimal]] = None,
) -> Decimal:
    """
    Retained earnings as seen from inside ``year``, up to ``through``.

    The snapshot of retained earnings and every income statement account
    closes into it, then each full year of income statement activity since
    the snapshot, then postings made to the account directly.
    """
    as_of = settings.opening_balance_as_of
    flow_start = as_of + timedelta(days=1)
    if baseline is None:
        baseline = await opening_balances(db, company_id, as_of)

    position = sum(
        (amount for code, amount in baseline.items() if (numeric_prefix(code) or 0) >= RETAINED_EARNINGS_NUMBER),
        ZERO,
    )

    closed_through = date(year - 1, 12, 31)
    if closed_through >= flow_start:
        closed = await movement_totals(db, company_id, flow_start, closed_through)
        position += sum(
            (net_of(closed, code) for code in closed if (numeric_prefix(code) or 0) > RETAINED_EARNINGS_NUMBER),
            ZERO,
        )

    direct = await movement_totals(
        db, company_id, flow_start, through, RETAINED_EARNINGS_CODE, RETAINED_EARNINGS_CODE
    )
    return round_money(position + net_of(direct, RETAINED_EARNINGS_CODE))


async def opening_positions(
    db: AsyncSession,
    company_id: int,
    accounts: List[AccountCode],
    start: date,
    pl_year_to_date: bool = True,
) -> Dict[str, Decimal]:
    """
    Balance of each account at the start of ``start`` (debit positive).

    Balance sheet accounts roll the snapshot forward, or back it out when
    the period starts on or before the snapshot date. Income statement
    accounts open at zero in January, or when ``pl_year_to_date`` is off;
    otherwise they carry the year-to-date activity.
    """
    if not accounts:
        return {}

    as_of = settings.opening_balance_as_of
    flow_start = as_of + timedelta(days=1)
    day_before = start - timedelta(days=1)
    year_start = date(start.year, 1, 1)
    baseline = await opening_balances(db, company_id, as_of)

    codes = [a.acct_code for a in accounts]
    low, high = min(codes), max(codes)
    positions: Dict[str, Decimal] = {}

    def _resets(account: AccountCode) -> bool:
        return is_profit_and_loss(account) and (start.month == 1 or not pl_year_to_date)

    if start <= as_of:
        backout = await movement_totals(db, company_id, start, as_of, low, high)
        for account in accounts:
            code = account.acct_code
            if _resets(account):
                positions[code] = ZERO
            else:
                positions[code] = round_money(baseline.get(code, ZERO) - net_of(backout, code))
        return positions

    forward = await movement_totals(db, company_id, flow_start, day_before, low, high)
    ytd: Dict[str, Tuple[Decimal, Decimal]] = {}
    if pl_year_to_date and start.month != 1:
        ytd = await movement_totals(db, company_id, max(year_start, flow_start), day_before, low, high)

    for account in accounts:
        code = account.acct_code
        if code == RETAINED_EARNINGS_CODE:
            positions[code] = await retained_earnings_position(db, company_id, start.year, day_before, baseline)
        elif is_profit_and_loss(account):
            if _resets(account):
                positions[code] = ZERO
            else:
                carried = baseline.get(code, ZERO) if year_start <= as_of else ZERO
                positions[code] = round_money(carried + net_of(ytd, code))
        else:
            positions[code] = round_money(baseline.get(code, ZERO) + net_of(forward, code))
    return positions
