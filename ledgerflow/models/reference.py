"""
LedgerFlow - Reference Data Models

Chart of accounts, opening balances and counterparties that the journals
and reports join to. Every table is company scoped; reference codes are
only unique inside one company.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, Integer, Numeric, String, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledgerflow.models.base import BaseModel, CompanyScopedMixin


class AccountMain(BaseModel, CompanyScopedMixin):
    """Main (parent) account grouping used in report headings."""

    __tablename__ = "account_main"

    main_acct_code: Mapped[str] = mapped_column(String(20), nullable=False)
    main_acct: Mapped[str] = mapped_column(String(200), nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "main_acct_code", name="uq_account_main_company_code"),
    )


class AccountCode(BaseModel, CompanyScopedMixin):
    """
    A GL account.

    ``bank_id`` links the account that carries a bank's cash balance; the
    balance engine resolves the bank row through it. ``fs`` is the financial
    statement bucket (``BS...`` balance sheet, ``IS...`` / ``P&L...`` income).
    """

    __tablename__ = "account_code"

    acct_code: Mapped[str] = mapped_column(String(20), nullable=False)
    acct_desc: Mapped[str] = mapped_column(String(200), nullable=False)
    acct_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    main_acct_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    main_acct: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    fs: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    acct_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    exclude: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    active_flag: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    bank_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "acct_code", name="uq_account_code_company_code"),
        Index("ix_account_code_company_bank", "company_id", "bank_id"),
    )


class BeginningBalance(BaseModel, CompanyScopedMixin):
    """Opening balance snapshot per account, as of the go-live cut-off."""

    __tablename__ = "beginning_balance"

    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    as_of: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "account_code", "as_of", name="uq_beginning_balance_company_acct"),
    )


class Bank(BaseModel, CompanyScopedMixin):
    __tablename__ = "bank"

    bank_id: Mapped[str] = mapped_column(String(20), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "bank_id", name="uq_bank_company_bank"),
    )


class Vendor(BaseModel, CompanyScopedMixin):
    __tablename__ = "vendor_list"

    vend_code: Mapped[str] = mapped_column(String(20), nullable=False)
    vend_name: Mapped[str] = mapped_column(String(200), nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "vend_code", name="uq_vendor_list_company_code"),
    )


class Customer(BaseModel, CompanyScopedMixin):
    __tablename__ = "customer_list"

    cust_id: Mapped[str] = mapped_column(String(20), nullable=False)
    cust_name: Mapped[str] = mapped_column(String(200), nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "cust_id", name="uq_customer_list_company_code"),
    )
