"""
LedgerFlow - Journals Router

API endpoints for the five journal types. The ``{module}`` path segment
selects the journal (general_accounting, cash_disbursement, cash_receipts,
cash_purchase, cash_sales). Every detail mutation answers with the
recomputed header totals.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.database import get_async_session
from ledgerflow.dependencies import get_journal_service, get_module
from ledgerflow.schemas.journals import (
    BalanceTotalsResponse,
    CancelStateRequest,
    DetailMutationResponse,
    JournalDetailCreate,
    JournalDetailResponse,
    JournalDetailUpdate,
    JournalHeaderCreate,
    JournalHeaderResponse,
    JournalHeaderUpdate,
    JournalResponse,
    UnbalancedListResponse,
)
from ledgerflow.services.balance_engine import BalanceTotals
from ledgerflow.services.journal_modules import JournalModule
from ledgerflow.services.journal_service import JournalService

router = APIRouter()


def _header_response(module: JournalModule, header) -> JournalHeaderResponse:
    party_column = module.party_field
    return JournalHeaderResponse(
        id=header.id,
        company_id=header.company_id,
        module=module.key,
        number=getattr(header, module.number_field),
        entry_date=getattr(header, module.date_field),
        explanation=header.explanation,
        bank_id=header.bank_id,
        party_id=getattr(header, party_column) if party_column else None,
        amount=getattr(header, module.amount_field),
        sum_debit=header.sum_debit,
        sum_credit=header.sum_credit,
        is_balanced=header.is_balanced,
        state=module.state_of(header),
        created_at=header.created_at,
        updated_at=header.updated_at,
    )


def _totals_response(totals: BalanceTotals) -> BalanceTotalsResponse:
    return BalanceTotalsResponse(**totals.to_dict())


def _header_fields(module: JournalModule, payload, exclude) -> Dict[str, Any]:
    """Map module-neutral payload names onto the journal's own columns."""
    fields = payload.model_dump(exclude_unset=True, exclude=exclude)
    if "entry_date" in fields:
        fields[module.date_field] = fields.pop("entry_date")
    if "number" in fields:
        number = fields.pop("number")
        if number:
            fields[module.number_field] = number
    return fields


# ===========================================
# HEADERS
# ===========================================

@router.post(
    "/{module}/headers",
    response_model=JournalHeaderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create journal header",
)
async def create_header(
    payload: JournalHeaderCreate,
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Create a header with zero totals and the next sequential number.

    Cash receipts and disbursements get their BANK row immediately.
    """
    fields = _header_fields(module, payload, exclude={"company_id"})
    header = await service.create_header(module, payload.company_id, fields)
    await db.commit()
    return _header_response(module, header)


@router.get("/{module}/headers/{transaction_id}", response_model=JournalResponse)
async def get_journal(
    transaction_id: int,
    company_id: int = Query(..., gt=0),
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
):
    header = await service.get_header(module, transaction_id, company_id)
    details = await service.get_details(module, header.id)
    return JournalResponse(
        header=_header_response(module, header),
        details=[JournalDetailResponse.model_validate(d) for d in details],
    )


@router.patch("/{module}/headers/{transaction_id}", response_model=JournalHeaderResponse)
async def update_header(
    transaction_id: int,
    payload: JournalHeaderUpdate,
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    fields = _header_fields(module, payload, exclude={"company_id"})
    header = await service.update_header(module, transaction_id, payload.company_id, fields)
    await db.commit()
    return _header_response(module, header)


@router.post("/{module}/headers/{transaction_id}/cancel", response_model=JournalHeaderResponse)
async def set_cancel_state(
    transaction_id: int,
    payload: CancelStateRequest,
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Cancel, reinstate or soft-delete a journal."""
    header = await service.set_cancel_state(module, transaction_id, payload.company_id, payload.state)
    await db.commit()
    return _header_response(module, header)


@router.delete("/{module}/headers/{transaction_id}", response_model=JournalHeaderResponse)
async def delete_header(
    transaction_id: int,
    company_id: int = Query(..., gt=0),
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Soft delete; the header and its details stay in storage."""
    header = await service.soft_delete(module, transaction_id, company_id)
    await db.commit()
    return _header_response(module, header)


@router.post("/{module}/headers/{transaction_id}/recalc", response_model=BalanceTotalsResponse)
async def recalc_header(
    transaction_id: int,
    company_id: int = Query(..., gt=0),
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Rebuild the bank row and totals from the current details."""
    totals = await service.recalc(module, transaction_id, company_id)
    await db.commit()
    return _totals_response(totals)


# ===========================================
# DETAILS
# ===========================================

@router.post(
    "/{module}/headers/{transaction_id}/details",
    response_model=DetailMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_detail(
    transaction_id: int,
    payload: JournalDetailCreate,
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    row, totals = await service.add_detail(
        module, transaction_id, payload.company_id, payload.acct_code, payload.debit, payload.credit
    )
    await db.commit()
    return DetailMutationResponse(
        detail=JournalDetailResponse.model_validate(row),
        totals=_totals_response(totals),
    )


@router.patch(
    "/{module}/headers/{transaction_id}/details/{detail_id}",
    response_model=DetailMutationResponse,
)
async def update_detail(
    transaction_id: int,
    detail_id: int,
    payload: JournalDetailUpdate,
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    """General accounting lines need a usable edit approval."""
    row, totals = await service.update_detail(
        module,
        transaction_id,
        payload.company_id,
        detail_id,
        acct_code=payload.acct_code,
        debit=payload.debit,
        credit=payload.credit,
    )
    await db.commit()
    return DetailMutationResponse(
        detail=JournalDetailResponse.model_validate(row),
        totals=_totals_response(totals),
    )


@router.delete(
    "/{module}/headers/{transaction_id}/details/{detail_id}",
    response_model=DetailMutationResponse,
)
async def delete_detail(
    transaction_id: int,
    detail_id: int,
    company_id: int = Query(..., gt=0),
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
    db: AsyncSession = Depends(get_async_session),
):
    totals = await service.delete_detail(module, transaction_id, company_id, detail_id)
    await db.commit()
    return DetailMutationResponse(totals=_totals_response(totals))


# ===========================================
# BALANCE QUERIES
# ===========================================

@router.get("/{module}/unbalanced", response_model=UnbalancedListResponse)
async def list_unbalanced(
    company_id: int = Query(..., gt=0),
    limit: Optional[int] = Query(20, ge=1, le=200),
    module: JournalModule = Depends(get_module),
    service: JournalService = Depends(get_journal_service),
):
    """Most recent active transactions whose debits and credits differ."""
    items = await service.list_unbalanced(module, company_id, limit=limit)
    return UnbalancedListResponse(
        module=module.key,
        exists=bool(items),
        items=[_header_response(module, h) for h in items],
    )
