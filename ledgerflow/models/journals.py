"""
LedgerFlow - Journal Models

Header/detail pairs for the five journal types:
- General Accounting (general journal vouchers)
- Cash Disbursement (checks and payments)
- Cash Receipts (collections)
- Cash Purchase (purchase journal)
- Cash Sales (sales journal)

Header totals (sum_debit, sum_credit, is_balanced and the legacy amount
column) are derived from the detail rows by the balance engine and are
never written by hand.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, Text, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, declared_attr

from ledgerflow.models.base import BaseModel, CompanyScopedMixin


BANK_WORKSTATION_ID = "BANK"


def _money(**kwargs):
    return mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        **kwargs,
    )


class JournalHeaderMixin(CompanyScopedMixin):
    """Columns shared by every journal header."""

    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bank_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Cached aggregates (recomputed after every detail mutation)
    sum_debit: Mapped[Decimal] = _money()
    sum_credit: Mapped[Decimal] = _money()
    is_balanced: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Legacy cancellation flag; encoding differs per module
    is_cancel: Mapped[str] = mapped_column(String(1), default="n", nullable=False)


class JournalDetailMixin(CompanyScopedMixin):
    """Columns shared by every journal detail line."""

    acct_code: Mapped[str] = mapped_column(String(20), nullable=False)
    debit: Mapped[Decimal] = _money()
    credit: Mapped[Decimal] = _money()
    workstation_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    @declared_attr.directive
    def __table_args__(cls):
        return (Index(f"ix_{cls.__tablename__}_txn_acct", "transaction_id", "acct_code"),)


# =============================================================================
# GENERAL ACCOUNTING
# =============================================================================

class GeneralAccounting(BaseModel, JournalHeaderMixin):
    __tablename__ = "general_accounting"
    __table_args__ = (UniqueConstraint("company_id", "ga_no"),)

    ga_no: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    gen_acct_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    gen_acct_amount: Mapped[Decimal] = _money()


class GeneralAccountingDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "general_accounting_details"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("general_accounting.id", ondelete="CASCADE"),
        nullable=False,
    )


# =============================================================================
# CASH DISBURSEMENT
# =============================================================================

class CashDisbursement(BaseModel, JournalHeaderMixin):
    __tablename__ = "cash_disbursement"
    __table_args__ = (UniqueConstraint("company_id", "cd_no"),)

    cd_no: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    disburse_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    disburse_amount: Mapped[Decimal] = _money()
    vend_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    check_ref_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pay_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class CashDisbursementDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_disbursement_details"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cash_disbursement.id", ondelete="CASCADE"),
        nullable=False,
    )


# =============================================================================
# CASH RECEIPTS
# =============================================================================

class CashReceipt(BaseModel, JournalHeaderMixin):
    __tablename__ = "cash_receipts"
    __table_args__ = (UniqueConstraint("company_id", "cr_no"),)

    cr_no: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    receipt_amount: Mapped[Decimal] = _money()
    cust_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    collection_receipt: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pay_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class CashReceiptDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_receipt_details"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cash_receipts.id", ondelete="CASCADE"),
        nullable=False,
    )


# =============================================================================
# CASH PURCHASE
# =============================================================================

class CashPurchase(BaseModel, JournalHeaderMixin):
    __tablename__ = "cash_purchase"
    __table_args__ = (UniqueConstraint("company_id", "cp_no"),)

    cp_no: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    purchase_amount: Mapped[Decimal] = _money()
    vend_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    booking_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    invoice_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rr_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    mill_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class CashPurchaseDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_purchase_details"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cash_purchase.id", ondelete="CASCADE"),
        nullable=False,
    )


# =============================================================================
# CASH SALES
# =============================================================================

class CashSales(BaseModel, JournalHeaderMixin):
    __tablename__ = "cash_sales"
    __table_args__ = (UniqueConstraint("company_id", "cs_no"),)

    cs_no: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    sales_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    sales_amount: Mapped[Decimal] = _money()
    cust_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    si_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    check_ref_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class CashSalesDetail(BaseModel, JournalDetailMixin):
    __tablename__ = "cash_sales_details"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cash_sales.id", ondelete="CASCADE"),
        nullable=False,
    )
