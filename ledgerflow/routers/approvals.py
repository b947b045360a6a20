"""
LedgerFlow - Approvals Router

Request, decide and release edit approvals for posted records.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.database import get_async_session
from ledgerflow.dependencies import get_approval_service
from ledgerflow.schemas.approvals import (
    ApprovalCreate,
    ApprovalDecision,
    ApprovalRelease,
    ApprovalResponse,
    ApprovalStatusResponse,
)
from ledgerflow.services.approval_service import ApprovalService
from ledgerflow.services.journal_modules import get_journal_module

router = APIRouter()


@router.post("", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
async def request_approval(
    payload: ApprovalCreate,
    service: ApprovalService = Depends(get_approval_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Open an approval request; an existing pending request is returned as is."""
    get_journal_module(payload.module)
    approval = await service.request_approval(
        payload.module,
        payload.record_id,
        payload.company_id,
        action=payload.action.value,
        reason=payload.reason,
        requester_id=payload.requester_id,
    )
    await db.commit()
    return ApprovalResponse.model_validate(approval)


@router.post("/{approval_id}/approve", response_model=ApprovalResponse)
async def approve(
    approval_id: int,
    payload: ApprovalDecision,
    service: ApprovalService = Depends(get_approval_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Approve a pending request and open its edit window."""
    approval = await service.approve(
        approval_id,
        payload.company_id,
        approver_id=payload.approver_id,
        edit_window_minutes=payload.edit_window_minutes,
        note=payload.note,
    )
    await db.commit()
    return ApprovalResponse.model_validate(approval)


@router.post("/{approval_id}/reject", response_model=ApprovalResponse)
async def reject(
    approval_id: int,
    payload: ApprovalDecision,
    service: ApprovalService = Depends(get_approval_service),
    db: AsyncSession = Depends(get_async_session),
):
    approval = await service.reject(
        approval_id,
        payload.company_id,
        approver_id=payload.approver_id,
        note=payload.note,
    )
    await db.commit()
    return ApprovalResponse.model_validate(approval)


@router.post("/release", response_model=ApprovalStatusResponse)
async def release(
    payload: ApprovalRelease,
    service: ApprovalService = Depends(get_approval_service),
    db: AsyncSession = Depends(get_async_session),
):
    """Consume the active edit approval of a record once editing is finished."""
    approval = await service.release_approval(payload.module, payload.record_id, payload.company_id)
    await db.commit()
    return ApprovalStatusResponse(
        exists=approval is not None,
        usable=False,
        approval=ApprovalResponse.model_validate(approval) if approval else None,
    )


@router.get("/status", response_model=ApprovalStatusResponse)
async def approval_status(
    module: str = Query(...),
    record_id: int = Query(..., gt=0),
    company_id: int = Query(..., gt=0),
    service: ApprovalService = Depends(get_approval_service),
):
    result = await service.status_for(module, record_id, company_id)
    approval = result["approval"]
    return ApprovalStatusResponse(
        exists=result["exists"],
        usable=result["usable"],
        approval=ApprovalResponse.model_validate(approval) if approval else None,
    )
