"""
Wallet Service - QR wallet transaction ingestion and bill matching
"""
from typing import Optional, List, Iterable
from sqlalchemy.orm import Session
from decimal import Decimal
from datetime import date, datetime, time, timedelta
import logging

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.events import EventBus, WalletTransactionLinked
from ledgerlink.core.exceptions import ValidationError, NotFoundError, AlreadyMatchedError
from ledgerlink.models import WalletTransaction
from ledgerlink.schemas import WalletTransactionIngest, WalletLinkRequest

logger = logging.getLogger(__name__)

# Days added on each side of the requested day when looking for a match,
# so QR payments captured around midnight still pair with the bill
MATCH_TOLERANCE_DAYS = 1


class WalletService:
    def __init__(self, db: Session, event_bus: EventBus, config: ReconConfig):
        self.db = db
        self.event_bus = event_bus
        self.config = config

    @property
    def tolerance(self) -> timedelta:
        days = self.config.wallet_match_tolerance_days
        return timedelta(days=MATCH_TOLERANCE_DAYS if days is None else days)

    def get_by_transaction_id(self, transaction_id: str) -> Optional[WalletTransaction]:
        return self.db.query(WalletTransaction).filter(
            WalletTransaction.transaction_id == transaction_id
        ).first()

    def list_unmatched(self, limit: int = 100) -> List[WalletTransaction]:
        return self.db.query(WalletTransaction).filter(
            WalletTransaction.matched == False
        ).order_by(WalletTransaction.transaction_date.desc()).limit(limit).all()

    def list_for_bill(self, voucher_number: str) -> List[WalletTransaction]:
        return self.db.query(WalletTransaction).filter(
            WalletTransaction.voucher_number == voucher_number
        ).order_by(WalletTransaction.transaction_date.desc()).all()

    def ingest(self, transactions: Iterable[WalletTransactionIngest]) -> int:
        """Store transactions from the wallet feed; known ids are skipped"""
        created = 0
        for txn in transactions:
            if self.get_by_transaction_id(txn.transaction_id):
                continue
            self.db.add(WalletTransaction(
                transaction_id=txn.transaction_id,
                amount=txn.amount,
                transaction_date=txn.transaction_date,
                issuer_name=txn.issuer_name,
                description=txn.description,
                status=txn.status,
                matched=False
            ))
            self.db.flush()
            created += 1
        return created

    def find_match(self, amount: Decimal, on_date: date) -> Optional[WalletTransaction]:
        """
        Best unmatched transaction for an exact amount around a day.
        Greedy: the earliest candidate wins, no global assignment.
        """
        if amount is None or Decimal(amount) <= 0:
            return None

        window_start = datetime.combine(on_date - self.tolerance, time.min)
        window_end = datetime.combine(on_date + self.tolerance + timedelta(days=1), time.min)

        return self.db.query(WalletTransaction).filter(
            WalletTransaction.matched == False,
            WalletTransaction.amount == Decimal(amount),
            WalletTransaction.transaction_date >= window_start,
            WalletTransaction.transaction_date < window_end
        ).order_by(
            WalletTransaction.transaction_date.asc(),
            WalletTransaction.id.asc()
        ).first()

    def link(self, transaction_id: str, bill: WalletLinkRequest) -> WalletTransaction:
        """Bind a transaction to a bill, once for the life of the record"""
        if not bill.voucher_number or not bill.party_name:
            raise ValidationError("voucher_number and party_name are required to link a transaction")

        txn = self.get_by_transaction_id(transaction_id)
        if not txn:
            raise NotFoundError("Wallet transaction", transaction_id)
        if txn.matched:
            raise AlreadyMatchedError(transaction_id, txn.voucher_number)

        company_name = bill.company_name or self.config.company_name
        bill_date = bill.bill_date.isoformat() if bill.bill_date else ""
        label = f"{company_name} | {bill.voucher_number} | {bill_date}"

        # Conditional update: a concurrent link that got here first wins
        updated = self.db.query(WalletTransaction).filter(
            WalletTransaction.id == txn.id,
            WalletTransaction.matched == False
        ).update({
            WalletTransaction.matched: True,
            WalletTransaction.voucher_number: bill.voucher_number,
            WalletTransaction.party_name: bill.party_name,
            WalletTransaction.company_name: company_name,
            WalletTransaction.display_label: label,
            WalletTransaction.description: label,
            WalletTransaction.linked_at: datetime.utcnow(),
        }, synchronize_session=False)
        if updated == 0:
            raise AlreadyMatchedError(transaction_id)

        self.db.flush()
        self.db.refresh(txn)
        logger.info(f"Linked wallet txn {transaction_id} to bill {bill.voucher_number}")
        return txn

    def publish_linked(self, txn: WalletTransaction) -> None:
        """Announce a link; call once the link is committed"""
        self.event_bus.publish(WalletTransactionLinked(
            transaction_id=txn.transaction_id,
            voucher_number=txn.voucher_number,
            party_name=txn.party_name,
            amount=txn.amount
        ))

    def match_and_link(self, amount: Decimal, on_date: date, bill: WalletLinkRequest) -> Optional[WalletTransaction]:
        """Find and bind in one step; a lost race reads as no match"""
        candidate = self.find_match(amount, on_date)
        if not candidate:
            return None
        try:
            return self.link(candidate.transaction_id, bill)
        except AlreadyMatchedError:
            logger.info(f"Wallet txn {candidate.transaction_id} claimed by another bill first")
            return None
