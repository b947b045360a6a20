"""
LedgerFlow - Journal Module Registry

Describes each journal type once so the balance engine, the journal
service and the reports can treat the five header/detail pairs uniformly:
- which columns hold the number, date and legacy amount
- which side of the legacy amount mirrors (debit or credit)
- whether a bank row is maintained, and on which side
- whether an account code may repeat inside one transaction
- how the legacy cancellation flag is encoded
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from ledgerflow.models.journals import (
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
from ledgerflow.utils.error_handling import NotFoundException, ValidationException


# =============================================================================
# CANCELLATION STATE
# =============================================================================

class CancelState(str, Enum):
    """In-memory cancellation contract shared by every journal type."""
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    DELETED = "DELETED"


class CancelCodec:
    """
    Translates between ``CancelState`` and one module's persisted flag.

    ``encode`` maps each supported state to its stored flag. Decoding
    accepts every stored flag plus ``extra_decode`` aliases that older rows
    may still carry.
    """

    def __init__(self, encode: Dict[CancelState, str], extra_decode: Optional[Dict[str, CancelState]] = None):
        self._encode = dict(encode)
        self._decode = {flag: state for state, flag in encode.items()}
        self._decode.update(extra_decode or {})

    @property
    def supported(self):
        return frozenset(self._encode)

    def encode(self, state: CancelState) -> str:
        try:
            return self._encode[state]
        except KeyError:
            raise ValidationException(
                f"State {state.value} is not supported by this journal.",
                field="state",
            )

    def decode(self, flag: Optional[str]) -> CancelState:
        value = (flag or "n").strip().lower()
        if value not in self._decode:
            raise ValueError(f"Unknown cancellation flag: {flag!r}")
        return self._decode[value]


# General accounting distinguishes cancelled from deleted; 'y' is a
# historical synonym for cancelled.
GENERAL_ACCOUNTING_CODEC = CancelCodec(
    {CancelState.ACTIVE: "n", CancelState.CANCELLED: "c", CancelState.DELETED: "d"},
    extra_decode={"y": CancelState.CANCELLED},
)

# Cash modules only know active / cancelled.
YES_NO_CODEC = CancelCodec({CancelState.ACTIVE: "n", CancelState.CANCELLED: "y"})


# =============================================================================
# MODULE DESCRIPTORS
# =============================================================================

class BankSide(str, Enum):
    """Which side the auto-balancing bank row posts to."""
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class JournalModule:
    key: str
    label: str
    header: Type
    detail: Type
    number_field: str
    date_field: str
    amount_field: str
    amount_mirrors: str  # "debit" | "credit"
    codec: CancelCodec
    number_base: int = 1
    bank_side: Optional[BankSide] = None
    allow_duplicate_accounts: bool = False
    edit_requires_approval: bool = False
    category: str = ""  # single-letter source tag used by the ledger reports
    party: Optional[str] = None  # "vendor" | "customer"
    party_field: Optional[str] = None
    search_fields: Tuple[str, ...] = ()

    @property
    def has_bank_row(self) -> bool:
        return self.bank_side is not None

    def party_column(self):
        return getattr(self.header, self.party_field) if self.party_field else None

    def number_column(self):
        return getattr(self.header, self.number_field)

    def date_column(self):
        return getattr(self.header, self.date_field)

    def state_of(self, header) -> CancelState:
        return self.codec.decode(header.is_cancel)

    def active_flag(self) -> str:
        return self.codec.encode(CancelState.ACTIVE)


GENERAL_ACCOUNTING = JournalModule(
    key="general_accounting",
    label="General Accounting",
    header=GeneralAccounting,
    detail=GeneralAccountingDetail,
    number_field="ga_no",
    date_field="gen_acct_date",
    amount_field="gen_acct_amount",
    amount_mirrors="debit",
    codec=GENERAL_ACCOUNTING_CODEC,
    allow_duplicate_accounts=True,
    edit_requires_approval=True,
    category="G",
    search_fields=("ga_no", "explanation"),
)

CASH_DISBURSEMENT = JournalModule(
    key="cash_disbursement",
    label="Cash Disbursement",
    header=CashDisbursement,
    detail=CashDisbursementDetail,
    number_field="cd_no",
    date_field="disburse_date",
    amount_field="disburse_amount",
    amount_mirrors="debit",
    codec=YES_NO_CODEC,
    number_base=800000,
    bank_side=BankSide.CREDIT,
    category="D",
    party="vendor",
    party_field="vend_id",
    search_fields=("cd_no", "check_ref_no", "explanation", "bank_id", "vend_id"),
)

CASH_RECEIPTS = JournalModule(
    key="cash_receipts",
    label="Cash Receipts",
    header=CashReceipt,
    detail=CashReceiptDetail,
    number_field="cr_no",
    date_field="receipt_date",
    amount_field="receipt_amount",
    amount_mirrors="credit",
    codec=YES_NO_CODEC,
    bank_side=BankSide.DEBIT,
    category="R",
    party="customer",
    party_field="cust_id",
    search_fields=("cr_no", "collection_receipt", "details", "explanation", "bank_id", "cust_id"),
)

CASH_PURCHASE = JournalModule(
    key="cash_purchase",
    label="Purchase Journal",
    header=CashPurchase,
    detail=CashPurchaseDetail,
    number_field="cp_no",
    date_field="purchase_date",
    amount_field="purchase_amount",
    amount_mirrors="debit",
    codec=YES_NO_CODEC,
    category="P",
    party="vendor",
    party_field="vend_id",
    search_fields=("cp_no", "booking_no", "explanation", "rr_no", "invoice_no", "bank_id", "vend_id", "mill_id"),
)

CASH_SALES = JournalModule(
    key="cash_sales",
    label="Sales Journal",
    header=CashSales,
    detail=CashSalesDetail,
    number_field="cs_no",
    date_field="sales_date",
    amount_field="sales_amount",
    amount_mirrors="credit",
    codec=YES_NO_CODEC,
    category="S",
    party="customer",
    party_field="cust_id",
    search_fields=("cs_no", "si_no", "check_ref_no", "explanation", "bank_id", "cust_id"),
)

JOURNAL_MODULES: Dict[str, JournalModule] = {
    m.key: m
    for m in (GENERAL_ACCOUNTING, CASH_DISBURSEMENT, CASH_RECEIPTS, CASH_PURCHASE, CASH_SALES)
}


def get_journal_module(key: str) -> JournalModule:
    """Look up a journal module by its key."""
    module = JOURNAL_MODULES.get(key)
    if module is None:
        raise NotFoundException("Journal module", key)
    return module
