"""
LedgerFlow - Journal Listing Queries

Header-oriented reads for the books, journals and registers: Active
headers of one journal type in a date window, their counterparty and bank
names, their detail lines, and the free-text search filter.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, or_, null
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.models.journals import BANK_WORKSTATION_ID, CashReceipt
from ledgerflow.models.reference import AccountCode, Bank, Customer, Vendor
from ledgerflow.services.balance_engine import BalanceTotals, compute_totals, round_money
from ledgerflow.services.journal_modules import CASH_RECEIPTS, JournalModule
from ledgerflow.services.reports.ledger_queries import natural_key

LIKE_ESCAPE = "\\"


@dataclass
class JournalLine:
    acct_code: str
    acct_desc: Optional[str]
    debit: Decimal
    credit: Decimal
    is_bank_row: bool = False


@dataclass
class JournalEntry:
    """A header with the names a listing prints beside it."""
    header: object
    number: str
    entry_date: date
    party: Optional[str]
    bank_name: Optional[str]
    lines: List[JournalLine] = field(default_factory=list)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def _party_target(module: JournalModule):
    header = module.header
    if module.party == "vendor":
        return Vendor, Vendor.vend_name, and_(
            Vendor.company_id == header.company_id,
            Vendor.vend_code == module.party_column(),
        )
    if module.party == "customer":
        return Customer, Customer.cust_name, and_(
            Customer.company_id == header.company_id,
            Customer.cust_id == module.party_column(),
        )
    return None


def search_condition(module: JournalModule, query: Optional[str]):
    """Case-insensitive match on the header number, text columns and party name."""
    term = (query or "").strip()
    if not term:
        return None
    pattern = f"%{escape_like(term)}%"
    columns = [getattr(module.header, name) for name in module.search_fields]
    party = _party_target(module)
    if party:
        columns.append(party[1])
    return or_(*[col.ilike(pattern, escape=LIKE_ESCAPE) for col in columns])


async def load_entries(
    db: AsyncSession,
    module: JournalModule,
    company_id: int,
    start: date,
    end: date,
    query: Optional[str] = None,
    with_lines: bool = True,
) -> List[JournalEntry]:
    """Active headers in [start, end], oldest first, with their detail lines."""
    header = module.header
    date_col = module.date_column()
    party = _party_target(module)

    stmt = select(
        header,
        party[1] if party else null(),
        Bank.bank_name,
    )
    if party:
        stmt = stmt.outerjoin(party[0], party[2])
    stmt = stmt.outerjoin(Bank, and_(
        Bank.company_id == header.company_id,
        Bank.bank_id == header.bank_id,
    ))

    conditions = [
        header.company_id == company_id,
        header.is_cancel == module.active_flag(),
        date_col >= start,
        date_col <= end,
    ]
    search = search_condition(module, query)
    if search is not None:
        conditions.append(search)

    result = await db.execute(stmt.where(and_(*conditions)).order_by(date_col, header.id))
    entries = [
        JournalEntry(
            header=row[0],
            number=str(getattr(row[0], module.number_field)),
            entry_date=getattr(row[0], module.date_field),
            party=row[1],
            bank_name=row[2],
        )
        for row in result.all()
    ]
    entries.sort(key=lambda e: (e.entry_date, natural_key(e.number), e.header.id))

    if with_lines and entries:
        lines = await load_lines(db, module, company_id, [e.header.id for e in entries])
        for entry in entries:
            entry.lines = lines.get(entry.header.id, [])
    return entries


async def load_lines(
    db: AsyncSession,
    module: JournalModule,
    company_id: int,
    transaction_ids: List[int],
) -> Dict[int, List[JournalLine]]:
    """Detail lines grouped by transaction, with company-scoped account titles."""
    detail = module.detail
    result = await db.execute(
        select(detail, AccountCode.acct_desc)
        .outerjoin(AccountCode, and_(
            AccountCode.company_id == detail.company_id,
            AccountCode.acct_code == detail.acct_code,
        ))
        .where(and_(
            detail.company_id == company_id,
            detail.transaction_id.in_(transaction_ids),
        ))
        .order_by(detail.transaction_id, detail.id)
    )
    grouped: Dict[int, List[JournalLine]] = {}
    for row, acct_desc in result.all():
        grouped.setdefault(row.transaction_id, []).append(JournalLine(
            acct_code=row.acct_code,
            acct_desc=acct_desc,
            debit=round_money(row.debit),
            credit=round_money(row.credit),
            is_bank_row=row.workstation_id == BANK_WORKSTATION_ID,
        ))
    return grouped


def entries_totals(entries: List[JournalEntry]) -> BalanceTotals:
    return compute_totals(
        (line.debit, line.credit) for entry in entries for line in entry.lines
    )


async def unbalanced_receipts_exist(db: AsyncSession, company_id: int, start: date, end: date) -> bool:
    """True when any Active receipt in the window is flagged unbalanced."""
    result = await db.execute(
        select(func.count(CashReceipt.id)).where(and_(
            CashReceipt.company_id == company_id,
            CashReceipt.is_cancel == CASH_RECEIPTS.active_flag(),
            CashReceipt.is_balanced.is_(False),
            CashReceipt.receipt_date >= start,
            CashReceipt.receipt_date <= end,
        ))
    )
    return result.scalar_one() > 0
