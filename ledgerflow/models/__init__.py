"""
LedgerFlow - Database Models

Importing this package registers every table on the declarative metadata.
"""

from ledgerflow.models.base import BaseModel, TimestampMixin, CompanyScopedMixin
from ledgerflow.models.reference import (
    AccountMain,
    AccountCode,
    BeginningBalance,
    Bank,
    Vendor,
    Customer,
)
from ledgerflow.models.journals import (
    BANK_WORKSTATION_ID,
    GeneralAccounting,
    GeneralAccountingDetail,
    CashDisbursement,
    CashDisbursementDetail,
    CashReceipt,
    CashReceiptDetail,
    CashPurchase,
    CashPurchaseDetail,
    CashSales,
    CashSalesDetail,
)
from ledgerflow.models.approval import Approval, ApprovalStatus, ApprovalAction

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "CompanyScopedMixin",
    "AccountMain",
    "AccountCode",
    "BeginningBalance",
    "Bank",
    "Vendor",
    "Customer",
    "BANK_WORKSTATION_ID",
    "GeneralAccounting",
    "GeneralAccountingDetail",
    "CashDisbursement",
    "CashDisbursementDetail",
    "CashReceipt",
    "CashReceiptDetail",
    "CashPurchase",
    "CashPurchaseDetail",
    "CashSales",
    "CashSalesDetail",
    "Approval",
    "ApprovalStatus",
    "ApprovalAction",
]
