"""
LedgerFlow - Approval Model

Time-boxed authorization tokens that unlock mutations of posted records.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledgerflow.models.base import BaseModel, CompanyScopedMixin


class ApprovalStatus(str, Enum):
    """Approval lifecycle states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    """Mutations an approval can unlock."""
    EDIT = "edit"
    POST = "post"
    UNPOST = "unpost"
    DELETE = "delete"
    PROCESS = "process"


class Approval(BaseModel, CompanyScopedMixin):
    """
    An edit approval for one record of one module.

    Usable only while ``status == approved``, ``consumed_at`` is null and
    ``expires_at`` lies in the future. ``first_edit_at`` is an audit stamp
    written on the first edit made under the approval.
    """

    __tablename__ = "approvals"

    module: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), default=ApprovalAction.EDIT.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ApprovalStatus.PENDING.value, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    requester_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    edit_window_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    first_edit_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_approvals_subject", "company_id", "module", "record_id", "action"),
    )
