"""
LedgerFlow - Approval Service

Edit approvals for posted journal records.

The gate is split in two steps: ``find_usable_approval`` is a pure lookup,
``require_approved_edit`` calls it and then stamps ``first_edit_at`` as a
separate write. Approvals are not consumed by edits; ``release_approval``
ends the edit window explicitly.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerflow.config import settings
from ledgerflow.models.approval import Approval, ApprovalAction, ApprovalStatus
from ledgerflow.utils.error_handling import (
    ApprovalRequiredException,
    ConflictException,
    NotFoundException,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class ApprovalService:
    """Service for the approval workflow and the edit gate."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # GATE
    # =========================================================================

    async def find_usable_approval(
        self,
        module: str,
        record_id: int,
        company_id: int,
        action: str = ApprovalAction.EDIT.value,
        now: Optional[datetime] = None,
    ) -> Optional[Approval]:
        """Most recent approved, unconsumed, unexpired approval. No side effects."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Approval).where(and_(
                Approval.module == module,
                Approval.record_id == record_id,
                Approval.company_id == company_id,
                Approval.action == action,
                Approval.status == ApprovalStatus.APPROVED.value,
                Approval.consumed_at.is_(None),
                Approval.expires_at > now,
            )).order_by(Approval.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def stamp_first_edit(self, approval: Approval, now: Optional[datetime] = None) -> Approval:
        """Record when the approval was first used; later uses keep the first stamp."""
        if approval.first_edit_at is None:
            approval.first_edit_at = now or utcnow()
            await self.db.flush()
        return approval

    async def require_approved_edit(self, module: str, record_id: int, company_id: int) -> Approval:
        """Raise 403 unless an edit approval is currently usable."""
        approval = await self.find_usable_approval(module, record_id, company_id)
        if approval is None:
            logger.warning(f"Edit refused without approval: {module} #{record_id} (company {company_id})")
            raise ApprovalRequiredException(module, record_id)
        return await self.stamp_first_edit(approval)

    async def release_approval(self, module: str, record_id: int, company_id: int) -> Optional[Approval]:
        """Consume the active edit approval for a record, if there is one."""
        approval = await self.find_usable_approval(module, record_id, company_id)
        if approval is None:
            return None
        approval.consumed_at = utcnow()
        await self.db.flush()
        logger.info(f"Approval {approval.id} released for {module} #{record_id}")
        return approval

    # =========================================================================
    # WORKFLOW
    # =========================================================================

    async def request_approval(
        self,
        module: str,
        record_id: int,
        company_id: int,
        action: str = ApprovalAction.EDIT.value,
        reason: Optional[str] = None,
        requester_id: Optional[int] = None,
    ) -> Approval:
        """Open a pending request, or return the one already pending."""
        result = await self.db.execute(
            select(Approval).where(and_(
                Approval.module == module,
                Approval.record_id == record_id,
                Approval.company_id == company_id,
                Approval.action == action,
                Approval.status == ApprovalStatus.PENDING.value,
            )).order_by(Approval.id.desc()).limit(1)
        )
        pending = result.scalar_one_or_none()
        if pending is not None:
            return pending

        approval = Approval(
            module=module,
            record_id=record_id,
            company_id=company_id,
            action=action,
            status=ApprovalStatus.PENDING.value,
            reason=reason,
            requester_id=requester_id,
            edit_window_minutes=settings.approval_edit_window_minutes,
        )
        self.db.add(approval)
        await self.db.flush()
        return approval

    async def get_approval(self, approval_id: int, company_id: int) -> Approval:
        approval = await self.db.get(Approval, approval_id)
        if approval is None or approval.company_id != company_id:
            raise NotFoundException("Approval", approval_id)
        return approval

    async def approve(
        self,
        approval_id: int,
        company_id: int,
        approver_id: Optional[int] = None,
        edit_window_minutes: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Approval:
        approval = await self.get_approval(approval_id, company_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise ConflictException(
                f"Approval is already {approval.status}.",
                resource_type="Approval",
            )
        now = utcnow()
        window = edit_window_minutes or approval.edit_window_minutes or settings.approval_edit_window_minutes
        approval.status = ApprovalStatus.APPROVED.value
        approval.approved_by = approver_id
        approval.approved_at = now
        approval.edit_window_minutes = window
        approval.expires_at = now + timedelta(minutes=window)
        approval.consumed_at = None
        approval.response_note = note
        await self.db.flush()
        return approval

    async def reject(
        self,
        approval_id: int,
        company_id: int,
        approver_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Approval:
        approval = await self.get_approval(approval_id, company_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise ConflictException(
                f"Approval is already {approval.status}.",
                resource_type="Approval",
            )
        approval.status = ApprovalStatus.REJECTED.value
        approval.approved_by = approver_id
        approval.response_note = note
        await self.db.flush()
        return approval

    async def status_for(
        self,
        module: str,
        record_id: int,
        company_id: int,
        action: str = ApprovalAction.EDIT.value,
    ) -> Dict[str, Any]:
        """Latest approval for a record, with whether it is usable right now."""
        result = await self.db.execute(
            select(Approval).where(and_(
                Approval.module == module,
                Approval.record_id == record_id,
                Approval.company_id == company_id,
                Approval.action == action,
            )).order_by(Approval.id.desc()).limit(1)
        )
        latest = result.scalar_one_or_none()
        if latest is None:
            return {"exists": False, "usable": False, "approval": None}

        now = utcnow()
        expires_at = as_utc(latest.expires_at)
        usable = (
            latest.status == ApprovalStatus.APPROVED.value
            and latest.consumed_at is None
            and expires_at is not None
            and expires_at > now
        )
        return {"exists": True, "usable": usable, "approval": latest}
