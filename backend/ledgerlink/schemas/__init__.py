"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class PaymentStatusEnum(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"


class ChequeSyncStatusEnum(str, Enum):
    CREATED = "created"
    DATE_CONFIRMED = "date_confirmed"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"


class ChequeStatusEnum(str, Enum):
    PENDING = "pending"
    DEPOSITED = "deposited"
    CLEARED = "cleared"
    BOUNCED = "bounced"


# ==================== BILL SCHEMAS ====================

class BillCreate(BaseModel):
    voucher_number: str = Field(..., min_length=1, max_length=100)
    party_name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    voucher_date: date


class BillResponse(BaseModel):
    id: int
    voucher_number: str
    party_name: str
    amount: Decimal
    voucher_date: date
    is_deleted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== CHEQUE SCHEMAS ====================

class ChequeEntry(BaseModel):
    """Cheque handed over as part of a bill payment"""
    bank_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None  # Missing date is confirmed later
    branch: Optional[str] = None


class ChequeCreate(ChequeEntry):
    party_name: str = Field(..., min_length=1, max_length=255)
    narration: Optional[str] = None
    received_date: Optional[date] = None
    voucher_number: Optional[str] = None
    bill_id: Optional[int] = None
    bill_amount: Optional[Decimal] = None


class ChequeBreakdownCreate(ChequeEntry):
    pass


class ChequeLinkRequest(BaseModel):
    voucher_number: Optional[str] = None
    bill_id: Optional[int] = None
    bill_amount: Decimal
    allocated_amount: Decimal


class ChequeDateUpdate(BaseModel):
    cheque_date: date
    cheque_number: Optional[str] = None
    confirmed_by: Optional[str] = None


class ChequeStatusUpdate(BaseModel):
    status: ChequeStatusEnum
    deposit_date: Optional[date] = None
    clear_date: Optional[date] = None
    bounce_date: Optional[date] = None
    bounce_reason: Optional[str] = None


class ChequeLinkResponse(BaseModel):
    id: int
    bill_id: Optional[int] = None
    voucher_number: Optional[str] = None
    bill_amount: Decimal
    allocated_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class ChequeResponse(BaseModel):
    id: int
    party_name: str
    bank_name: str
    branch: Optional[str] = None
    amount: Decimal
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    received_date: date
    narration: Optional[str] = None
    sync_status: ChequeSyncStatusEnum
    ledger_voucher_id: Optional[str] = None
    sync_error: Optional[str] = None
    sync_attempts: int
    needs_date_confirm: bool
    status: ChequeStatusEnum
    deposit_date: Optional[date] = None
    clear_date: Optional[date] = None
    bounce_date: Optional[date] = None
    bounce_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChequeWithLinks(ChequeResponse):
    bill_links: List[ChequeLinkResponse] = []


class CreatedChequeResponse(BaseModel):
    id: int
    amount: Decimal
    needs_date_confirm: bool
    synced: bool
    sync_status: ChequeSyncStatusEnum
    sync_error: Optional[str] = None


# ==================== BILL PAYMENT SCHEMAS ====================

class RecordBillPaymentRequest(BaseModel):
    voucher_number: str
    party_name: str
    bill_amount: Decimal
    bill_id: Optional[int] = None
    bill_date: Optional[date] = None
    payment_date: Optional[date] = None
    company_name: Optional[str] = None
    cash_amount: Decimal = Decimal("0")
    wallet_amount: Decimal = Decimal("0")
    cheque_total: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    e_wallet_amount: Decimal = Decimal("0")
    bank_deposit: Decimal = Decimal("0")
    notes: Optional[str] = None
    cheques: List[ChequeEntry] = []
    expected_version: Optional[int] = None


class BillPaymentResponse(BaseModel):
    id: int
    bill_id: Optional[int] = None
    voucher_number: str
    party_name: str
    bill_amount: Decimal
    bill_date: Optional[date] = None
    cash_amount: Decimal
    wallet_amount: Decimal
    cheque_total: Decimal
    discount: Decimal
    e_wallet_amount: Decimal
    bank_deposit: Decimal
    total_paid: Decimal
    balance_due: Decimal
    payment_status: PaymentStatusEnum
    notes: Optional[str] = None
    version: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletMatchResponse(BaseModel):
    matched: bool
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    transaction_date: Optional[datetime] = None
    issuer: Optional[str] = None
    display_description: Optional[str] = None
    message: Optional[str] = None


class RecordBillPaymentResponse(BaseModel):
    success: bool = True
    message: str
    status: PaymentStatusEnum
    payment: BillPaymentResponse
    created_cheques: Optional[List[CreatedChequeResponse]] = None
    wallet_match: Optional[WalletMatchResponse] = None


# ==================== WALLET SCHEMAS ====================

class WalletTransactionIngest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    transaction_date: datetime
    issuer_name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class WalletLinkRequest(BaseModel):
    voucher_number: str = Field(..., min_length=1)
    party_name: str = Field(..., min_length=1)
    company_name: Optional[str] = None
    bill_date: Optional[date] = None


class WalletTransactionResponse(BaseModel):
    id: int
    transaction_id: str
    amount: Decimal
    transaction_date: datetime
    issuer_name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    matched: bool
    voucher_number: Optional[str] = None
    party_name: Optional[str] = None
    company_name: Optional[str] = None
    display_label: Optional[str] = None
    linked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BillPaymentDetail(BaseModel):
    success: bool = True
    payment: BillPaymentResponse
    cheques: List[ChequeResponse] = []
    wallet_transactions: List[WalletTransactionResponse] = []


# ==================== OUTSTANDING SCHEMAS ====================

class OutstandingBillResponse(BaseModel):
    id: int
    party_name: str
    bill_name: str
    bill_date: Optional[date] = None
    closing_balance: Decimal
    credit_period: int
    ageing_days: int
    ageing_bucket: str
    synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OutstandingSyncResponse(BaseModel):
    success: bool = True
    message: str
    synced_party_count: int
    synced_bill_count: int


class AgeingBucketTotal(BaseModel):
    bucket: str
    bill_count: int
    party_count: int
    total_amount: Decimal


class AgeingSummaryResponse(BaseModel):
    overdue_only: bool
    buckets: List[AgeingBucketTotal]
    grand_total: Decimal


class PartyOutstanding(BaseModel):
    party_name: str
    total_outstanding: Decimal
    bill_count: int
    oldest_bill_date: Optional[date] = None


# ==================== COLUMNAR SCHEMAS ====================

class ColumnarRow(BaseModel):
    party_name: str
    bill_count: int
    bill_amount: Decimal
    cash: Decimal
    wallet: Decimal
    cheque: Decimal
    discount: Decimal
    e_wallet: Decimal
    bank_deposit: Decimal
    total_paid: Decimal
    balance: Decimal


class ColumnarTotals(BaseModel):
    bill_amount: Decimal
    cash: Decimal
    wallet: Decimal
    cheque: Decimal
    discount: Decimal
    e_wallet: Decimal
    bank_deposit: Decimal
    total_paid: Decimal
    balance: Decimal


class ColumnarResponse(BaseModel):
    day: date
    count: int
    rows: List[ColumnarRow]
    totals: ColumnarTotals


# ==================== BANK NAME SCHEMAS ====================

class BankNameCreate(BaseModel):
    short_name: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)


class BankNameResponse(BankNameCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)
