"""
LedgerFlow - Approval Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from ledgerflow.models.approval import ApprovalAction


class ApprovalCreate(BaseModel):
    """Schema for requesting an approval."""
    company_id: int = Field(..., gt=0)
    module: str = Field(..., min_length=1, max_length=50)
    record_id: int = Field(..., gt=0)
    action: ApprovalAction = ApprovalAction.EDIT
    reason: Optional[str] = Field(None, max_length=1000)
    requester_id: Optional[int] = None


class ApprovalDecision(BaseModel):
    """Schema for approving or rejecting a request."""
    company_id: int = Field(..., gt=0)
    approver_id: Optional[int] = None
    edit_window_minutes: Optional[int] = Field(None, gt=0, le=1440)
    note: Optional[str] = Field(None, max_length=1000)


class ApprovalRelease(BaseModel):
    company_id: int = Field(..., gt=0)
    module: str = Field(..., min_length=1, max_length=50)
    record_id: int = Field(..., gt=0)


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    module: str
    record_id: int
    action: str
    status: str
    reason: Optional[str] = None
    requester_id: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    response_note: Optional[str] = None
    edit_window_minutes: int
    expires_at: Optional[datetime] = None
    consumed_at: Optional[datetime] = None
    first_edit_at: Optional[datetime] = None


class ApprovalStatusResponse(BaseModel):
    exists: bool
    usable: bool
    approval: Optional[ApprovalResponse] = None
