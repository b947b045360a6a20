"""
LedgerFlow - Journal Schemas

Pydantic schemas for journal headers, detail lines and balance totals.
Header payloads use module-neutral names (``entry_date``, ``number``);
the router maps them onto each journal's own columns.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from ledgerflow.services.journal_modules import CancelState


# =============================================================================
# HEADER SCHEMAS
# =============================================================================

class JournalHeaderFields(BaseModel):
    """Optional header columns; a journal rejects the ones it does not have."""
    explanation: Optional[str] = None
    bank_id: Optional[str] = Field(None, max_length=20)
    vend_id: Optional[str] = Field(None, max_length=20)
    cust_id: Optional[str] = Field(None, max_length=20)
    check_ref_no: Optional[str] = Field(None, max_length=50)
    pay_method: Optional[str] = Field(None, max_length=20)
    collection_receipt: Optional[str] = Field(None, max_length=50)
    details: Optional[str] = None
    booking_no: Optional[str] = Field(None, max_length=50)
    invoice_no: Optional[str] = Field(None, max_length=50)
    rr_no: Optional[str] = Field(None, max_length=50)
    mill_id: Optional[str] = Field(None, max_length=20)
    si_no: Optional[str] = Field(None, max_length=50)


class JournalHeaderCreate(JournalHeaderFields):
    """Schema for creating a journal header (store main)."""
    company_id: int = Field(..., gt=0)
    entry_date: date
    number: Optional[str] = Field(None, max_length=20, pattern=r"^[0-9]+$")


class JournalHeaderUpdate(JournalHeaderFields):
    """Schema for updating a journal header."""
    company_id: int = Field(..., gt=0)
    entry_date: Optional[date] = None


class JournalHeaderResponse(BaseModel):
    id: int
    company_id: int
    module: str
    number: str
    entry_date: date
    explanation: Optional[str] = None
    bank_id: Optional[str] = None
    party_id: Optional[str] = None
    amount: Decimal
    sum_debit: Decimal
    sum_credit: Decimal
    is_balanced: bool
    state: CancelState
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# DETAIL SCHEMAS
# =============================================================================

class JournalDetailCreate(BaseModel):
    company_id: int = Field(..., gt=0)
    acct_code: str = Field(..., min_length=1, max_length=20)
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")


class JournalDetailUpdate(BaseModel):
    company_id: int = Field(..., gt=0)
    acct_code: Optional[str] = Field(None, min_length=1, max_length=20)
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None


class JournalDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: int
    acct_code: str
    debit: Decimal
    credit: Decimal
    workstation_id: Optional[str] = None


class BalanceTotalsResponse(BaseModel):
    debit: float
    credit: float
    balanced: bool


class DetailMutationResponse(BaseModel):
    """A detail mutation returns the line (when it still exists) and fresh totals."""
    detail: Optional[JournalDetailResponse] = None
    totals: BalanceTotalsResponse


class JournalResponse(BaseModel):
    header: JournalHeaderResponse
    details: List[JournalDetailResponse] = []


# =============================================================================
# STATE SCHEMAS
# =============================================================================

class CancelStateRequest(BaseModel):
    company_id: int = Field(..., gt=0)
    state: CancelState


class UnbalancedListResponse(BaseModel):
    module: str
    exists: bool
    items: List[JournalHeaderResponse] = []
