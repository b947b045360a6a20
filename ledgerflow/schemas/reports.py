"""
LedgerFlow - Report Schemas

Pydantic schemas for report requests and ticket responses.
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class ReportFormat(str, Enum):
    """Canonical report formats."""
    PDF = "pdf"
    XLS = "xls"


FORMAT_ALIASES = {
    "pdf": ReportFormat.PDF,
    "xls": ReportFormat.XLS,
    "xlsx": ReportFormat.XLS,
    "excel": ReportFormat.XLS,
}


def normalize_format(value: Any) -> ReportFormat:
    """Map pdf / excel / xls / xlsx (any case) onto the canonical format."""
    if isinstance(value, ReportFormat):
        return value
    key = str(value or "").strip().lower()
    if key not in FORMAT_ALIASES:
        raise ValueError("format must be one of: pdf, excel, xls, xlsx")
    return FORMAT_ALIASES[key]


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class FinancialStatementFilter(str, Enum):
    """Trial balance account filter."""
    ALL = "ALL"
    ACT = "ACT"  # accounts not flagged as excluded
    BS = "BS"
    IS = "IS"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ReportRequestBase(BaseModel):
    """Fields every report request carries."""
    company_id: int = Field(..., gt=0, description="Tenant scope")
    format: ReportFormat = ReportFormat.PDF

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, v):
        return normalize_format(v)


class AccountRangeReportRequest(ReportRequestBase):
    """General ledger request."""
    start_account: str = Field(..., min_length=1, max_length=20)
    end_account: str = Field(..., min_length=1, max_length=20)
    start_date: date
    end_date: date
    orientation: Orientation = Orientation.LANDSCAPE

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self

    @property
    def account_bounds(self):
        """(low, high) regardless of the order the caller sent them in."""
        return min(self.start_account, self.end_account), max(self.start_account, self.end_account)


class TrialBalanceRequest(AccountRangeReportRequest):
    fs: FinancialStatementFilter = FinancialStatementFilter.ALL

    @field_validator("fs", mode="before")
    @classmethod
    def _upper_fs(cls, v):
        return str(v or "ALL").strip().upper()


class DateRangeReportRequest(ReportRequestBase):
    """Journal books and journals."""
    start_date: date
    end_date: date
    query: Optional[str] = Field(None, max_length=200)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class PeriodReportRequest(ReportRequestBase):
    """Monthly registers."""
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=2999)
    query: Optional[str] = Field(None, max_length=200)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class TicketResponse(BaseModel):
    ticket: str


class JobStateResponse(BaseModel):
    """Ticket state as seen by pollers."""
    ticket: str
    report: str
    status: str
    progress: int
    message: Optional[str] = None
    format: str
    params: Dict[str, Any] = {}
    company_id: int
    file: Optional[str] = None
    download_name: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
