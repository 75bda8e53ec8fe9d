"""
SQLAlchemy Models for the Reconciliation Store
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from ledgerlink.core.database import Base


# ==================== ENUMS ====================

class PaymentStatus(enum.Enum):
    PAID = "paid"
    PARTIAL = "partial"


class ChequeSyncStatus(enum.Enum):
    CREATED = "created"
    DATE_CONFIRMED = "date_confirmed"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"


class ChequeStatus(enum.Enum):
    PENDING = "pending"
    DEPOSITED = "deposited"
    CLEARED = "cleared"
    BOUNCED = "bounced"


# ==================== BILLS ====================

class Bill(Base):
    """Sale bill as known to the ledger system"""
    __tablename__ = 'bills'

    id = Column(Integer, primary_key=True)
    voucher_number = Column(String(100), nullable=False, index=True)
    party_name = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    voucher_date = Column(Date, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    payment = relationship("BillPayment", back_populates="bill", uselist=False)

    __table_args__ = (
        UniqueConstraint('voucher_number', 'party_name', 'voucher_date', name='uq_bill_voucher_party_date'),
    )


class BillPayment(Base):
    """Breakdown of a bill's amount into payment instruments, one row per voucher"""
    __tablename__ = 'bill_payments'

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey('bills.id', ondelete='SET NULL'), nullable=True)
    voucher_number = Column(String(100), nullable=False, unique=True)
    party_name = Column(String(255), nullable=False)
    bill_amount = Column(Numeric(15, 2), nullable=False)
    bill_date = Column(Date, nullable=True)
    cash_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    wallet_amount = Column(Numeric(15, 2), default=Decimal("0.00"))  # QR wallet
    cheque_total = Column(Numeric(15, 2), default=Decimal("0.00"))
    discount = Column(Numeric(15, 2), default=Decimal("0.00"))
    e_wallet_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    bank_deposit = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_paid = Column(Numeric(15, 2), default=Decimal("0.00"))
    balance_due = Column(Numeric(15, 2), default=Decimal("0.00"))  # Negative when overpaid
    payment_status = Column(String(20), default=PaymentStatus.PARTIAL.value)
    notes = Column(Text, nullable=True)
    version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bill = relationship("Bill", back_populates="payment")


# ==================== CHEQUES ====================

class Cheque(Base):
    """Cheque received from a party"""
    __tablename__ = 'cheques'

    id = Column(Integer, primary_key=True)
    party_name = Column(String(255), nullable=False, index=True)
    bank_name = Column(String(100), nullable=False)  # Bank short name
    branch = Column(String(100), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    cheque_number = Column(String(50), nullable=True)
    cheque_date = Column(Date, nullable=True, index=True)  # Null until confirmed
    received_date = Column(Date, nullable=False)
    narration = Column(Text, nullable=True)

    # Ledger sync
    sync_status = Column(String(20), default=ChequeSyncStatus.CREATED.value, nullable=False, index=True)
    ledger_voucher_id = Column(String(100), nullable=True)
    ledger_company = Column(String(255), nullable=True)
    sync_error = Column(Text, nullable=True)
    sync_attempts = Column(Integer, default=0, nullable=False)
    last_sync_attempt_at = Column(DateTime, nullable=True)
    date_confirmed_at = Column(DateTime, nullable=True)
    date_confirmed_by = Column(String(100), nullable=True)

    # Deposit lifecycle
    status = Column(String(20), default=ChequeStatus.PENDING.value, nullable=False, index=True)
    deposit_date = Column(Date, nullable=True)
    clear_date = Column(Date, nullable=True)
    bounce_date = Column(Date, nullable=True)
    bounce_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bill_links = relationship("ChequeBillLink", back_populates="cheque", cascade="all, delete-orphan")

    @property
    def needs_date_confirm(self) -> bool:
        return self.cheque_date is None

    @property
    def is_synced(self) -> bool:
        return self.sync_status == ChequeSyncStatus.SYNCED.value


class ChequeBillLink(Base):
    """Allocation of (part of) a cheque to a bill"""
    __tablename__ = 'cheque_bill_links'

    id = Column(Integer, primary_key=True)
    cheque_id = Column(Integer, ForeignKey('cheques.id', ondelete='CASCADE'), nullable=False, index=True)
    bill_id = Column(Integer, ForeignKey('bills.id', ondelete='SET NULL'), nullable=True, index=True)
    voucher_number = Column(String(100), nullable=True, index=True)
    bill_amount = Column(Numeric(15, 2), nullable=False)  # Bill amount at link time
    allocated_amount = Column(Numeric(15, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    cheque = relationship("Cheque", back_populates="bill_links")
    bill = relationship("Bill")


# ==================== WALLET TRANSACTIONS ====================

class WalletTransaction(Base):
    """QR wallet transaction captured by the ingestion feed"""
    __tablename__ = 'wallet_transactions'

    id = Column(Integer, primary_key=True)
    transaction_id = Column(String(100), nullable=False, unique=True)
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_date = Column(DateTime, nullable=False, index=True)
    issuer_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=True)

    # Bill link, set once by the matcher
    matched = Column(Boolean, default=False, nullable=False)
    voucher_number = Column(String(100), nullable=True, index=True)
    party_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    display_label = Column(String(500), nullable=True)
    linked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_wallet_unmatched_amount', 'matched', 'amount'),
    )


# ==================== OUTSTANDING (AGEING CACHE) ====================

class OutstandingBill(Base):
    """Bill-wise closing balance snapshot pulled from the ledger system"""
    __tablename__ = 'outstanding_bills'

    id = Column(Integer, primary_key=True)
    sync_batch = Column(String(32), nullable=False, index=True)
    party_name = Column(String(255), nullable=False, index=True)
    bill_name = Column(String(255), nullable=False)
    bill_date = Column(Date, nullable=True)
    closing_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    credit_period = Column(Integer, default=0)
    ageing_days = Column(Integer, default=0)
    ageing_bucket = Column(String(10), default="0-30", index=True)
    synced_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('sync_batch', 'party_name', 'bill_name', name='uq_outstanding_batch_party_bill'),
    )


class OutstandingSyncState(Base):
    """Points readers at the currently active outstanding snapshot"""
    __tablename__ = 'outstanding_sync_state'

    id = Column(Integer, primary_key=True)
    active_batch = Column(String(32), nullable=True)
    party_count = Column(Integer, default=0)
    bill_count = Column(Integer, default=0)
    synced_at = Column(DateTime, nullable=True)


# ==================== REFERENCE DATA ====================

class BankName(Base):
    """Bank short name to full name mapping"""
    __tablename__ = 'bank_names'

    id = Column(Integer, primary_key=True)
    short_name = Column(String(50), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
