"""
Bill Payment Service - multi-instrument payment aggregate per bill
Supports: cash, QR wallet, cheque(s), discount, e-wallet, bank deposit
"""
from dataclasses import dataclass, field
from typing import Optional, List, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from decimal import Decimal
from datetime import date
import logging

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.events import EventBus, PaymentRecorded
from ledgerlink.core.exceptions import ValidationError, NotFoundError, ConflictError
from ledgerlink.models import Bill, BillPayment, Cheque, ChequeBillLink, WalletTransaction, PaymentStatus
from ledgerlink.schemas import RecordBillPaymentRequest, WalletLinkRequest, ChequeEntry
from ledgerlink.services.cheque_service import ChequeService
from ledgerlink.services.ledger_gateway import LedgerGateway
from ledgerlink.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

INSTRUMENT_FIELDS = (
    "cash_amount", "wallet_amount", "cheque_total",
    "discount", "e_wallet_amount", "bank_deposit",
)


@dataclass
class PaymentResult:
    payment: BillPayment
    created_cheques: List[Cheque] = field(default_factory=list)
    wallet_requested: bool = False
    wallet_match: Optional[WalletTransaction] = None

    @property
    def message(self) -> str:
        if self.payment.payment_status == PaymentStatus.PAID.value:
            return "Bill fully paid"
        return "Payment recorded"


def compute_totals(bill_amount: Decimal, amounts: dict) -> tuple:
    """Return (total_paid, balance_due, status) for instrument amounts"""
    total_paid = sum((Decimal(amounts.get(name) or 0) for name in INSTRUMENT_FIELDS), Decimal("0"))
    balance_due = Decimal(bill_amount) - total_paid
    status = PaymentStatus.PAID.value if balance_due <= 0 else PaymentStatus.PARTIAL.value
    return total_paid, balance_due, status


class BillPaymentService:
    def __init__(self, db: Session, gateway: LedgerGateway, event_bus: EventBus, config: ReconConfig):
        self.db = db
        self.gateway = gateway
        self.event_bus = event_bus
        self.config = config
        self.cheques = ChequeService(db, gateway, event_bus, config)
        self.wallet = WalletService(db, event_bus, config)

    def get_by_voucher(self, voucher_number: str) -> Optional[BillPayment]:
        return self.db.query(BillPayment).filter(
            BillPayment.voucher_number == voucher_number
        ).first()

    def get_payment(self, voucher_number: str) -> BillPayment:
        payment = self.get_by_voucher(voucher_number)
        if not payment:
            raise NotFoundError("Payment record", voucher_number)
        return payment

    def list_partial_payments(self) -> List[BillPayment]:
        return self.db.query(BillPayment).filter(
            BillPayment.balance_due > 0
        ).order_by(BillPayment.updated_at.desc(), BillPayment.id.desc()).all()

    def _validate(self, data: RecordBillPaymentRequest):
        if not data.voucher_number or not data.voucher_number.strip():
            raise ValidationError("voucher_number is required", field="voucher_number")
        if not data.party_name or not data.party_name.strip():
            raise ValidationError("party_name is required", field="party_name")
        if data.bill_amount is None or data.bill_amount <= 0:
            raise ValidationError("Valid bill_amount is required", field="bill_amount")
        for name in INSTRUMENT_FIELDS:
            if (getattr(data, name) or 0) < 0:
                raise ValidationError(f"{name} cannot be negative", field=name)
        for i, cheque in enumerate(data.cheques, start=1):
            if not cheque.bank_name:
                raise ValidationError(f"Cheque {i}: bank_name is required", field="cheques")
            if cheque.amount is None or cheque.amount <= 0:
                raise ValidationError(f"Cheque {i}: valid amount is required", field="cheques")

    def _resolve_bill(self, data: RecordBillPaymentRequest) -> Optional[Bill]:
        if data.bill_id is not None:
            bill = self.db.query(Bill).filter(Bill.id == data.bill_id, Bill.is_deleted == False).first()
            if not bill:
                raise NotFoundError("Bill", data.bill_id)
            return bill
        return self.db.query(Bill).filter(
            Bill.voucher_number == data.voucher_number,
            Bill.party_name == data.party_name,
            Bill.is_deleted == False
        ).order_by(Bill.voucher_date.desc()).first()

    def _check_version(self, existing: Optional[BillPayment], expected_version: Optional[int]):
        if not self.config.enforce_payment_versions or existing is None:
            return
        if expected_version != existing.version:
            raise ConflictError(
                f"Payment for {existing.voucher_number} is at version {existing.version}, "
                f"request was based on {expected_version}"
            )

    def record_payment(self, data: RecordBillPaymentRequest) -> PaymentResult:
        """
        Create or replace the payment breakdown for a bill.

        Cheques are created and linked first (ledger sync is best-effort);
        cheques the voucher already holds are reused, and ones the new
        breakdown leaves out are detached. A wallet transaction is auto-linked
        only for the part of the QR amount not already linked to the voucher.
        Then the aggregate is upserted and committed, and only then is the
        payment-recorded event published.
        """
        self._validate(data)
        voucher_number = data.voucher_number.strip()
        party_name = data.party_name.strip()

        existing = self.get_by_voucher(voucher_number)
        self._check_version(existing, data.expected_version)
        bill = self._resolve_bill(data)
        bill_id = bill.id if bill else data.bill_id
        payment_date = data.payment_date or date.today()
        # Unregistered bills are filed under the day they were paid
        bill_date = (data.bill_date
                     or (bill.voucher_date if bill else None)
                     or (existing.bill_date if existing else None)
                     or payment_date)

        amounts = {name: getattr(data, name) or Decimal("0") for name in INSTRUMENT_FIELDS}

        created_cheques = []
        if data.cheques:
            created_cheques = self._replace_cheques(voucher_number, party_name, bill_id,
                                                    data.bill_amount, data.cheques)
            amounts["cheque_total"] = sum((Decimal(entry.amount) for entry in data.cheques), Decimal("0"))
        elif amounts["cheque_total"] == 0:
            self.cheques.detach_from_voucher(voucher_number)

        wallet_requested = amounts["wallet_amount"] > 0
        wallet_match, newly_linked = self._settle_wallet(
            amounts["wallet_amount"],
            payment_date,
            WalletLinkRequest(
                voucher_number=voucher_number,
                party_name=party_name,
                company_name=data.company_name,
                bill_date=bill_date
            )
        )

        payment = self._upsert(existing, voucher_number, party_name, data.bill_amount,
                               bill_id, bill_date, amounts, data.notes)
        self.db.commit()

        if newly_linked:
            self.wallet.publish_linked(wallet_match)
        self._publish(payment)

        return PaymentResult(
            payment=payment,
            created_cheques=created_cheques,
            wallet_requested=wallet_requested,
            wallet_match=wallet_match
        )

    @staticmethod
    def _same_cheque(link: ChequeBillLink, entry: ChequeEntry) -> bool:
        cheque = link.cheque
        return (
            cheque.bank_name == entry.bank_name.strip()
            and link.allocated_amount == Decimal(entry.amount)
            and (cheque.cheque_number or None) == (entry.cheque_number or None)
            and (entry.cheque_date is None or cheque.cheque_date == entry.cheque_date)
        )

    def _replace_cheques(self, voucher_number: str, party_name: str, bill_id: Optional[int],
                         bill_amount: Decimal, entries: List[ChequeEntry]) -> List[Cheque]:
        """
        Make the cheques linked to a voucher match the given entries.

        A cheque already linked with the same bank, number, amount and date is
        kept, so recording the same breakdown again never pushes it to the
        ledger twice. Linked cheques missing from the entries are detached.
        Returns only the cheques created by this call.
        """
        available = self.cheques.links_for_voucher(voucher_number)
        kept, new_entries = [], []
        for entry in entries:
            link = next((candidate for candidate in available if self._same_cheque(candidate, entry)), None)
            if link is None:
                new_entries.append(entry)
                continue
            available.remove(link)
            link.bill_amount = Decimal(bill_amount)
            kept.append(link.cheque_id)
            self.cheques.try_sync(link.cheque)

        self.cheques.detach_from_voucher(voucher_number, keep_cheque_ids=kept)

        created = []
        for entry in new_entries:
            cheque = self.cheques.create_cheque(
                party_name=party_name,
                bank_name=entry.bank_name,
                amount=entry.amount,
                cheque_number=entry.cheque_number,
                cheque_date=entry.cheque_date,
                branch=entry.branch,
                narration=f"For bill {voucher_number}"
            )
            self.cheques.link_cheque_to_bill(cheque.id, bill_id, voucher_number, bill_amount, entry.amount)
            created.append(cheque)
        return created

    def _settle_wallet(self, wallet_amount: Decimal, payment_date: date,
                       bill: WalletLinkRequest) -> Tuple[Optional[WalletTransaction], bool]:
        """
        Bring the voucher's wallet links up to the declared QR amount.
        Returns the transaction to report and whether it was linked just now.
        Links are permanent, so a lowered amount is only logged.
        """
        linked = self.wallet.list_for_bill(bill.voucher_number)
        linked_total = sum((txn.amount for txn in linked), Decimal("0"))

        if linked_total > wallet_amount:
            logger.warning(
                f"Bill {bill.voucher_number} declares Rs. {wallet_amount} by wallet "
                f"but Rs. {linked_total} is already linked to it"
            )
        if wallet_amount <= 0:
            return None, False
        if linked and linked_total >= wallet_amount:
            return linked[0], False

        remaining = wallet_amount - linked_total
        match = self.wallet.match_and_link(remaining, payment_date, bill)
        if not match:
            logger.info(f"No wallet transaction for Rs. {remaining} on {payment_date}")
            return None, False
        return match, True

    def _upsert(self, existing: Optional[BillPayment], voucher_number: str, party_name: str,
                bill_amount: Decimal, bill_id: Optional[int], bill_date: Optional[date],
                amounts: dict, notes: Optional[str]) -> BillPayment:
        """Replace, never add to, the stored breakdown"""
        fields = (party_name, bill_amount, bill_id, bill_date, amounts, notes)

        if existing is None:
            payment = BillPayment(voucher_number=voucher_number, version=0)
            self._apply(payment, *fields)
            try:
                with self.db.begin_nested():
                    self.db.add(payment)
                    self.db.flush()
                return payment
            except IntegrityError:
                # Another first recording of this voucher committed in between
                existing = self.get_by_voucher(voucher_number)
                if existing is None:
                    raise
                if self.config.enforce_payment_versions:
                    raise ConflictError(
                        f"Payment for {voucher_number} was recorded concurrently at version "
                        f"{existing.version}; reload and retry"
                    )
                logger.warning(f"Payment for {voucher_number} was recorded concurrently; applying as an update")

        self._apply(existing, *fields)
        self.db.flush()
        return existing

    def _apply(self, payment: BillPayment, party_name: str, bill_amount: Decimal,
               bill_id: Optional[int], bill_date: Optional[date],
               amounts: dict, notes: Optional[str]):
        total_paid, balance_due, status = compute_totals(bill_amount, amounts)

        payment.party_name = party_name
        payment.bill_amount = Decimal(bill_amount)
        payment.bill_id = bill_id if bill_id is not None else payment.bill_id
        payment.bill_date = bill_date or payment.bill_date
        for name in INSTRUMENT_FIELDS:
            setattr(payment, name, Decimal(amounts[name]))
        payment.total_paid = total_paid
        payment.balance_due = balance_due
        payment.payment_status = status
        payment.notes = notes
        payment.version = (payment.version or 0) + 1

    def refresh_cheque_total(self, voucher_number: str, party_name: str = None,
                             bill_amount: Decimal = None, bill_id: int = None) -> BillPayment:
        """Recompute cheque_total from the cheques linked to a voucher"""
        existing = self.get_by_voucher(voucher_number)
        if existing is None and (not party_name or not bill_amount):
            raise NotFoundError("Payment record", voucher_number)

        amounts = {name: getattr(existing, name) if existing else Decimal("0") for name in INSTRUMENT_FIELDS}
        amounts["cheque_total"] = self.cheques.allocated_total_for_voucher(voucher_number)

        payment = self._upsert(
            existing,
            voucher_number,
            existing.party_name if existing else party_name,
            existing.bill_amount if existing else bill_amount,
            existing.bill_id if existing else bill_id,
            existing.bill_date if existing else None,
            amounts,
            existing.notes if existing else None
        )
        self.db.commit()
        self._publish(payment)
        return payment

    def _publish(self, payment: BillPayment):
        self.event_bus.publish(PaymentRecorded(
            voucher_number=payment.voucher_number,
            party_name=payment.party_name,
            total_paid=payment.total_paid,
            balance_due=payment.balance_due,
            status=payment.payment_status
        ))
