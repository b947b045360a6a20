"""
LedgerFlow - Balance Engine

Keeps the derived balance state of a journal transaction in step with its
detail rows:
- recompute sum(debit), sum(credit), balanced flag and the legacy amount
- maintain the auto-balancing BANK row of cash receipts / disbursements
- validate detail lines before anything is written

Totals are always recomputed from scratch. Callers run AdjustBankRow before
RecalcTotals and commit both together with the detail mutation.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from sqlalchemy import select, func, and_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.models.journals import BANK_WORKSTATION_ID
from ledgerflow.models.reference import AccountCode
from ledgerflow.services.journal_modules import BankSide, JournalModule
from ledgerflow.utils.error_handling import (
    BankRowProtectedException,
    DuplicateAccountException,
    InactiveAccountException,
    InvalidAmountException,
    NotFoundException,
)

logger = logging.getLogger(__name__)

BALANCE_EPSILON = Decimal("0.005")
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# =============================================================================
# PURE COMPUTATION
# =============================================================================

def round_money(value) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_balance(debit, credit) -> bool:
    """True when debit and credit agree within the fixed tolerance."""
    return abs(Decimal(str(debit)) - Decimal(str(credit))) < BALANCE_EPSILON


@dataclass(frozen=True)
class BalanceTotals:
    debit: Decimal
    credit: Decimal
    balanced: bool

    def to_dict(self) -> dict:
        return {
            "debit": float(self.debit),
            "credit": float(self.credit),
            "balanced": self.balanced,
        }


def compute_totals(lines: Iterable[Tuple[object, object]]) -> BalanceTotals:
    """Sum (debit, credit) pairs. An empty transaction balances at 0 = 0."""
    debit = ZERO
    credit = ZERO
    for line_debit, line_credit in lines:
        debit += Decimal(str(line_debit or 0))
        credit += Decimal(str(line_credit or 0))
    debit = round_money(debit)
    credit = round_money(credit)
    return BalanceTotals(debit=debit, credit=credit, balanced=amounts_balance(debit, credit))


def bank_row_amounts(side: BankSide, debit_ex_bank, credit_ex_bank) -> Tuple[Decimal, Decimal]:
    """
    Return (debit, credit) for the bank row.

    Disbursements credit the bank for the net debit of the other rows,
    receipts debit it for their net credit. The amount is floored at zero,
    so an overdrawn transaction stays visibly unbalanced.
    """
    debit_ex_bank = Decimal(str(debit_ex_bank or 0))
    credit_ex_bank = Decimal(str(credit_ex_bank or 0))
    if side == BankSide.CREDIT:
        return ZERO, round_money(max(ZERO, debit_ex_bank - credit_ex_bank))
    return round_money(max(ZERO, credit_ex_bank - debit_ex_bank)), ZERO


def validate_amounts(debit, credit) -> Tuple[Decimal, Decimal]:
    """Exactly one of debit/credit must be positive; the other must be zero."""
    d = round_money(debit or 0)
    c = round_money(credit or 0)
    one_sided = (d > ZERO and c == ZERO) or (c > ZERO and d == ZERO)
    if not one_sided:
        raise InvalidAmountException(debit, credit)
    return d, c


# =============================================================================
# BALANCE ENGINE
# =============================================================================

class BalanceEngine:
    """Database-backed balance maintenance for one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_header(self, module: JournalModule, transaction_id: int):
        header = await self.db.get(module.header, transaction_id)
        if header is None:
            raise NotFoundException(module.label, transaction_id)
        return header

    async def recalc_totals(self, module: JournalModule, transaction_id: int) -> BalanceTotals:
        """Recompute and persist the cached totals of a transaction."""
        detail = module.detail
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(detail.debit), 0),
                func.coalesce(func.sum(detail.credit), 0),
            ).where(detail.transaction_id == transaction_id)
        )
        sum_debit, sum_credit = result.one()
        totals = compute_totals([(sum_debit, sum_credit)])

        header = await self.get_header(module, transaction_id)
        header.sum_debit = totals.debit
        header.sum_credit = totals.credit
        header.is_balanced = totals.balanced
        legacy = totals.debit if module.amount_mirrors == "debit" else totals.credit
        setattr(header, module.amount_field, legacy)
        await self.db.flush()

        return totals

    async def resolve_bank_account(self, header) -> Optional[AccountCode]:
        """The GL account linked to the header's selected bank, if any."""
        if not header.bank_id:
            return None
        result = await self.db.execute(
            select(AccountCode).where(and_(
                AccountCode.company_id == header.company_id,
                AccountCode.bank_id == header.bank_id,
            )).order_by(AccountCode.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def adjust_bank_row(self, module: JournalModule, transaction_id: int):
        """
        Ensure exactly one BANK row exists and force it to balance the rest.

        Does nothing for modules without a bank row or when the header's bank
        does not resolve to an account.
        """
        if not module.has_bank_row:
            return None

        header = await self.get_header(module, transaction_id)
        bank_account = await self.resolve_bank_account(header)
        if bank_account is None:
            return None

        detail = module.detail
        result = await self.db.execute(
            select(detail).where(and_(
                detail.transaction_id == transaction_id,
                detail.workstation_id == BANK_WORKSTATION_ID,
            )).order_by(detail.id)
        )
        bank_rows = list(result.scalars().all())

        if bank_rows:
            bank_row = bank_rows[0]
            extra_ids = [row.id for row in bank_rows[1:]]
            if extra_ids:
                logger.warning(
                    f"Removing {len(extra_ids)} duplicate bank rows from {module.key} #{transaction_id}"
                )
                await self.db.execute(delete(detail).where(detail.id.in_(extra_ids)))
        else:
            bank_row = detail(
                transaction_id=transaction_id,
                company_id=header.company_id,
                acct_code=bank_account.acct_code,
                debit=ZERO,
                credit=ZERO,
                workstation_id=BANK_WORKSTATION_ID,
            )
            self.db.add(bank_row)

        if bank_row.acct_code != bank_account.acct_code:
            bank_row.acct_code = bank_account.acct_code

        sums = await self.db.execute(
            select(
                func.coalesce(func.sum(detail.debit), 0),
                func.coalesce(func.sum(detail.credit), 0),
            ).where(and_(
                detail.transaction_id == transaction_id,
                func.coalesce(detail.workstation_id, "") != BANK_WORKSTATION_ID,
            ))
        )
        debit_ex_bank, credit_ex_bank = sums.one()
        bank_row.debit, bank_row.credit = bank_row_amounts(module.bank_side, debit_ex_bank, credit_ex_bank)
        await self.db.flush()

        return bank_row

    async def rebalance(self, module: JournalModule, transaction_id: int) -> BalanceTotals:
        """Bank row first, then totals."""
        await self.adjust_bank_row(module, transaction_id)
        return await self.recalc_totals(module, transaction_id)

    # =========================================================================
    # DETAIL VALIDATION
    # =========================================================================

    async def ensure_active_account(self, company_id: int, acct_code: str) -> AccountCode:
        result = await self.db.execute(
            select(AccountCode).where(and_(
                AccountCode.company_id == company_id,
                AccountCode.acct_code == acct_code,
                AccountCode.active_flag.is_(True),
            ))
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise InactiveAccountException(acct_code)
        return account

    async def ensure_unique_account(
        self,
        module: JournalModule,
        transaction_id: int,
        acct_code: str,
        exclude_detail_id: Optional[int] = None,
    ) -> None:
        if module.allow_duplicate_accounts:
            return
        detail = module.detail
        conditions = [
            detail.transaction_id == transaction_id,
            detail.acct_code == acct_code,
        ]
        if exclude_detail_id is not None:
            conditions.append(detail.id != exclude_detail_id)
        result = await self.db.execute(select(func.count(detail.id)).where(and_(*conditions)))
        if result.scalar_one() > 0:
            raise DuplicateAccountException(acct_code)

    async def validate_detail(
        self,
        module: JournalModule,
        header,
        acct_code: str,
        debit,
        credit,
        exclude_detail_id: Optional[int] = None,
    ) -> Tuple[Decimal, Decimal]:
        """Run every detail rule; raises before any write happens."""
        amounts = validate_amounts(debit, credit)
        await self.ensure_active_account(header.company_id, acct_code)
        await self.ensure_unique_account(module, header.id, acct_code, exclude_detail_id)
        return amounts

    # =========================================================================
    # DETAIL MUTATIONS
    # =========================================================================

    async def get_detail(self, module: JournalModule, transaction_id: int, detail_id: int):
        detail = await self.db.get(module.detail, detail_id)
        if detail is None or detail.transaction_id != transaction_id:
            raise NotFoundException(f"{module.label} detail", detail_id)
        return detail

    async def add_detail(
        self,
        module: JournalModule,
        header,
        acct_code: str,
        debit,
        credit,
    ) -> Tuple[object, BalanceTotals]:
        debit, credit = await self.validate_detail(module, header, acct_code, debit, credit)
        row = module.detail(
            transaction_id=header.id,
            company_id=header.company_id,
            acct_code=acct_code,
            debit=debit,
            credit=credit,
        )
        self.db.add(row)
        await self.db.flush()
        totals = await self.rebalance(module, header.id)
        return row, totals

    async def update_detail(
        self,
        module: JournalModule,
        header,
        detail_id: int,
        acct_code: Optional[str] = None,
        debit=None,
        credit=None,
    ) -> Tuple[object, BalanceTotals]:
        row = await self.get_detail(module, header.id, detail_id)
        if module.has_bank_row and row.workstation_id == BANK_WORKSTATION_ID:
            raise BankRowProtectedException()

        new_code = acct_code if acct_code is not None else row.acct_code
        new_debit = debit if debit is not None else row.debit
        new_credit = credit if credit is not None else row.credit
        new_debit, new_credit = await self.validate_detail(
            module, header, new_code, new_debit, new_credit, exclude_detail_id=row.id
        )

        row.acct_code = new_code
        row.debit = new_debit
        row.credit = new_credit
        await self.db.flush()
        totals = await self.rebalance(module, header.id)
        return row, totals

    async def delete_detail(self, module: JournalModule, header, detail_id: int) -> BalanceTotals:
        row = await self.get_detail(module, header.id, detail_id)
        if module.has_bank_row and row.workstation_id == BANK_WORKSTATION_ID:
            raise BankRowProtectedException()
        await self.db.delete(row)
        await self.db.flush()
        return await self.rebalance(module, header.id)
