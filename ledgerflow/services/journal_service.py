"""
LedgerFlow - Journal Service

Header lifecycle for every journal type:
- create a header with the next sequential number and zero totals
- add / update / delete detail lines through the balance engine
- cancel, reinstate and soft-delete
- list unbalanced transactions

Detail mutations are refused on cancelled or deleted headers. General
accounting edits of saved lines pass through the approval gate first.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, cast, Integer
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.services.approval_service import ApprovalService
from ledgerflow.services.balance_engine import BalanceEngine, BalanceTotals, ZERO
from ledgerflow.services.journal_modules import CancelState, JournalModule
from ledgerflow.utils.error_handling import (
    ConflictException,
    ErrorCode,
    NotFoundException,
    RecordClosedException,
    TenantMismatchException,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Header numbers are sequential integers stored as text
_NUMBER_PATTERN = re.compile(r"[0-9]+")

# Columns a caller may set on a header; totals and flags are engine-owned.
PROTECTED_HEADER_FIELDS = frozenset({
    "id", "company_id", "sum_debit", "sum_credit", "is_balanced", "is_cancel",
    "created_at", "updated_at",
})


class JournalService:
    """Service for journal header/detail operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.engine = BalanceEngine(db)
        self.approvals = ApprovalService(db)

    # =========================================================================
    # HEADERS
    # =========================================================================

    async def next_number(self, module: JournalModule, company_id: int) -> str:
        """Last number + 1 for the company, starting at the module's base."""
        number_col = module.number_column()
        result = await self.db.execute(
            select(func.max(cast(number_col, Integer))).where(module.header.company_id == company_id)
        )
        last = result.scalar()
        if last is None or last < module.number_base:
            return str(module.number_base)
        return str(last + 1)

    async def _claim_number(
        self,
        module: JournalModule,
        company_id: int,
        number: Any,
        exclude_id: Optional[int] = None,
    ) -> str:
        """Validate a caller-chosen number and make sure the company has not used it."""
        value = str(number).strip()
        if not _NUMBER_PATTERN.fullmatch(value):
            raise ValidationException(f"{module.number_field} must contain digits only.", field=module.number_field)
        number_col = module.number_column()
        stmt = select(module.header.id).where(and_(module.header.company_id == company_id, number_col == value))
        if exclude_id is not None:
            stmt = stmt.where(module.header.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise ConflictException(
                f"{module.label} number {value} already exists.",
                resource_type=module.label,
                code=ErrorCode.DUPLICATE_ENTRY,
                details={"number": value},
            )
        return value

    async def create_header(self, module: JournalModule, company_id: int, fields: Dict[str, Any]):
        """Create a header with zero totals; cash modules get their bank row right away."""
        values = {k: v for k, v in fields.items() if k not in PROTECTED_HEADER_FIELDS}
        unknown = [k for k in values if not hasattr(module.header, k)]
        if unknown:
            raise ValidationException(f"Unknown fields for {module.label}: {', '.join(sorted(unknown))}")
        if not values.get(module.date_field):
            raise ValidationException(f"{module.date_field} is required.", field=module.date_field)

        if values.get(module.number_field):
            values[module.number_field] = await self._claim_number(module, company_id, values[module.number_field])
        else:
            values[module.number_field] = await self.next_number(module, company_id)

        header = module.header(
            company_id=company_id,
            sum_debit=ZERO,
            sum_credit=ZERO,
            is_balanced=True,
            is_cancel=module.active_flag(),
            **values,
        )
        setattr(header, module.amount_field, ZERO)
        self.db.add(header)
        await self.db.flush()

        if module.has_bank_row:
            await self.engine.rebalance(module, header.id)

        logger.info(f"Created {module.key} #{header.id} ({getattr(header, module.number_field)}) for company {company_id}")
        return header

    async def get_header(self, module: JournalModule, transaction_id: int, company_id: int):
        """Fetch a header, enforcing the tenant boundary."""
        header = await self.db.get(module.header, transaction_id)
        if header is None:
            raise NotFoundException(module.label, transaction_id)
        if header.company_id != company_id:
            raise TenantMismatchException()
        return header

    async def get_details(self, module: JournalModule, transaction_id: int) -> List[Any]:
        detail = module.detail
        result = await self.db.execute(
            select(detail).where(detail.transaction_id == transaction_id).order_by(detail.id)
        )
        return list(result.scalars().all())

    def _ensure_open(self, module: JournalModule, header) -> None:
        state = module.state_of(header)
        if state != CancelState.ACTIVE:
            raise RecordClosedException(module.key, header.id, state.value)

    async def update_header(self, module: JournalModule, transaction_id: int, company_id: int, fields: Dict[str, Any]):
        header = await self.get_header(module, transaction_id, company_id)
        self._ensure_open(module, header)
        for key, value in fields.items():
            if key in PROTECTED_HEADER_FIELDS or not hasattr(module.header, key):
                raise ValidationException(f"Field {key} cannot be updated.", field=key)
            if key == module.number_field:
                value = await self._claim_number(module, company_id, value, exclude_id=header.id)
            setattr(header, key, value)
        await self.db.flush()
        # A bank change moves the bank row to the new account
        if module.has_bank_row:
            await self.engine.rebalance(module, header.id)
        return header

    # =========================================================================
    # DETAILS
    # =========================================================================

    async def add_detail(
        self,
        module: JournalModule,
        transaction_id: int,
        company_id: int,
        acct_code: str,
        debit,
        credit,
    ) -> Tuple[Any, BalanceTotals]:
        header = await self.get_header(module, transaction_id, company_id)
        self._ensure_open(module, header)
        return await self.engine.add_detail(module, header, acct_code, debit, credit)

    async def update_detail(
        self,
        module: JournalModule,
        transaction_id: int,
        company_id: int,
        detail_id: int,
        acct_code: Optional[str] = None,
        debit=None,
        credit=None,
    ) -> Tuple[Any, BalanceTotals]:
        header = await self.get_header(module, transaction_id, company_id)
        self._ensure_open(module, header)
        if module.edit_requires_approval:
            await self.approvals.require_approved_edit(module.key, header.id, company_id)
        return await self.engine.update_detail(module, header, detail_id, acct_code, debit, credit)

    async def delete_detail(
        self,
        module: JournalModule,
        transaction_id: int,
        company_id: int,
        detail_id: int,
    ) -> BalanceTotals:
        header = await self.get_header(module, transaction_id, company_id)
        self._ensure_open(module, header)
        if module.edit_requires_approval:
            await self.approvals.require_approved_edit(module.key, header.id, company_id)
        return await self.engine.delete_detail(module, header, detail_id)

    async def recalc(self, module: JournalModule, transaction_id: int, company_id: int) -> BalanceTotals:
        header = await self.get_header(module, transaction_id, company_id)
        return await self.engine.rebalance(module, header.id)

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    async def set_cancel_state(
        self,
        module: JournalModule,
        transaction_id: int,
        company_id: int,
        state: CancelState,
    ):
        """Flip between active and cancelled. Deleted journals stay deleted."""
        if state == CancelState.DELETED:
            return await self.soft_delete(module, transaction_id, company_id)

        header = await self.get_header(module, transaction_id, company_id)
        current = module.state_of(header)
        if current == CancelState.DELETED:
            raise RecordClosedException(module.key, header.id, current.value)
        header.is_cancel = module.codec.encode(state)
        await self.db.flush()
        logger.info(f"{module.key} #{header.id} set to {state.value}")
        return header

    async def soft_delete(self, module: JournalModule, transaction_id: int, company_id: int):
        """Hide a journal from lists while keeping it and its details."""
        header = await self.get_header(module, transaction_id, company_id)
        header.is_cancel = module.codec.encode(CancelState.DELETED)
        await self.db.flush()
        logger.info(f"{module.key} #{header.id} soft-deleted")
        return header

    # =========================================================================
    # BALANCE QUERIES
    # =========================================================================

    def _unbalanced_filter(self, module: JournalModule, company_id: int):
        header = module.header
        return and_(
            header.company_id == company_id,
            header.is_balanced.is_(False),
            header.is_cancel == module.active_flag(),
        )

    async def list_unbalanced(self, module: JournalModule, company_id: int, limit: int = 20) -> List[Any]:
        header = module.header
        result = await self.db.execute(
            select(header)
            .where(self._unbalanced_filter(module, company_id))
            .order_by(header.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def unbalanced_exists(self, module: JournalModule, company_id: int) -> bool:
        header = module.header
        result = await self.db.execute(
            select(func.count(header.id)).where(self._unbalanced_filter(module, company_id))
        )
        return result.scalar_one() > 0
