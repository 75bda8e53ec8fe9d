"""
Cheque Service - cheque lifecycle, bill links and deferred ledger sync
"""
from typing import Optional, List, Dict, Iterable
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from decimal import Decimal
from datetime import date, datetime
import logging

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.events import EventBus, ChequeSynced, ChequeDateConfirmed
from ledgerlink.core.exceptions import ValidationError, NotFoundError, GatewayUnavailableError
from ledgerlink.models import (
    Cheque, ChequeBillLink, Bill, BankName, ChequeSyncStatus, ChequeStatus
)
from ledgerlink.services.ledger_gateway import LedgerGateway, ChequePush

logger = logging.getLogger(__name__)


# Deposit lifecycle; bounced cheques may be presented again
STATUS_TRANSITIONS = {
    ChequeStatus.PENDING.value: {ChequeStatus.DEPOSITED.value, ChequeStatus.BOUNCED.value},
    ChequeStatus.DEPOSITED.value: {ChequeStatus.CLEARED.value, ChequeStatus.BOUNCED.value},
    ChequeStatus.CLEARED.value: set(),
    ChequeStatus.BOUNCED.value: {ChequeStatus.PENDING.value},
}


class ChequeService:
    def __init__(self, db: Session, gateway: LedgerGateway, event_bus: EventBus, config: ReconConfig):
        self.db = db
        self.gateway = gateway
        self.event_bus = event_bus
        self.config = config

    # ==================== LOOKUPS ====================

    def get_by_id(self, cheque_id: int) -> Optional[Cheque]:
        return self.db.query(Cheque).options(
            joinedload(Cheque.bill_links)
        ).filter(Cheque.id == cheque_id).first()

    def get_cheque(self, cheque_id: int) -> Cheque:
        cheque = self.get_by_id(cheque_id)
        if not cheque:
            raise NotFoundError("Cheque", cheque_id)
        return cheque

    def list_cheques(self, status: str = None, party_name: str = None,
                     from_date: date = None, to_date: date = None,
                     sync_status: str = None, limit: int = None) -> List[Cheque]:
        query = self.db.query(Cheque)
        if status:
            query = query.filter(Cheque.status == status)
        if party_name:
            query = query.filter(Cheque.party_name.ilike(f"%{party_name}%"))
        if from_date:
            query = query.filter(Cheque.cheque_date >= from_date)
        if to_date:
            query = query.filter(Cheque.cheque_date <= to_date)
        if sync_status:
            query = query.filter(Cheque.sync_status == sync_status)
        query = query.order_by(Cheque.received_date.desc(), Cheque.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_unsynced(self) -> List[Cheque]:
        """Dated cheques the ledger has not accepted yet"""
        return self.db.query(Cheque).filter(
            Cheque.sync_status != ChequeSyncStatus.SYNCED.value,
            Cheque.cheque_date.isnot(None)
        ).order_by(Cheque.received_date, Cheque.id).all()

    def list_due_for_deposit(self, as_of: date = None) -> List[Cheque]:
        as_of = as_of or date.today()
        return self.db.query(Cheque).filter(
            Cheque.status == ChequeStatus.PENDING.value,
            Cheque.cheque_date.isnot(None),
            Cheque.cheque_date <= as_of
        ).order_by(Cheque.cheque_date).all()

    def list_pending_dates(self) -> List[Dict]:
        """Cheques still waiting for a date, grouped by the bill they pay"""
        cheques = self.db.query(Cheque).options(
            joinedload(Cheque.bill_links)
        ).filter(Cheque.cheque_date.is_(None)).order_by(Cheque.created_at, Cheque.id).all()

        grouped: Dict[str, Dict] = {}
        for cheque in cheques:
            link = cheque.bill_links[0] if cheque.bill_links else None
            voucher_number = link.voucher_number if link and link.voucher_number else "Unknown"
            if voucher_number not in grouped:
                grouped[voucher_number] = {
                    "voucher_number": voucher_number,
                    "bill_amount": link.bill_amount if link else Decimal("0"),
                    "party_name": cheque.party_name,
                    "cheques": []
                }
            grouped[voucher_number]["cheques"].append({
                "id": cheque.id,
                "bank_name": cheque.bank_name,
                "amount": cheque.amount,
                "received_date": cheque.received_date
            })
        return list(grouped.values())

    def cheques_for_voucher(self, voucher_number: str) -> List[Cheque]:
        return self.db.query(Cheque).join(
            ChequeBillLink, ChequeBillLink.cheque_id == Cheque.id
        ).filter(
            ChequeBillLink.voucher_number == voucher_number
        ).order_by(Cheque.cheque_date, Cheque.id).all()

    def links_for_voucher(self, voucher_number: str) -> List[ChequeBillLink]:
        return self.db.query(ChequeBillLink).options(
            joinedload(ChequeBillLink.cheque)
        ).filter(
            ChequeBillLink.voucher_number == voucher_number
        ).order_by(ChequeBillLink.id).all()

    def allocated_total_for_voucher(self, voucher_number: str) -> Decimal:
        total = self.db.query(func.sum(ChequeBillLink.allocated_amount)).filter(
            ChequeBillLink.voucher_number == voucher_number
        ).scalar()
        return Decimal(total or 0)

    def summary(self) -> Dict[str, Dict]:
        """Count and amount per deposit status"""
        result = {s.value: {"count": 0, "amount": Decimal("0")} for s in ChequeStatus}
        rows = self.db.query(
            Cheque.status, func.count(Cheque.id), func.sum(Cheque.amount)
        ).group_by(Cheque.status).all()
        for status, count, amount in rows:
            if status in result:
                result[status] = {"count": count, "amount": Decimal(amount or 0)}
        return result

    def party_summary(self, party_name: str) -> Dict:
        cheques = self.db.query(Cheque).filter(
            Cheque.party_name == party_name
        ).order_by(Cheque.cheque_date.desc()).all()

        totals = {s.value: Decimal("0") for s in ChequeStatus}
        for cheque in cheques:
            totals[cheque.status] = totals.get(cheque.status, Decimal("0")) + cheque.amount
        totals["total"] = totals[ChequeStatus.PENDING.value] + totals[ChequeStatus.DEPOSITED.value]

        return {"party_name": party_name, "cheques": cheques, "summary": totals}

    # ==================== MUTATIONS ====================

    def create_cheque(self, party_name: str, bank_name: str, amount: Decimal,
                      cheque_number: str = None, cheque_date: date = None,
                      branch: str = None, narration: str = None,
                      received_date: date = None, push_to_ledger: bool = True) -> Cheque:
        """Create a cheque; a missing date is confirmed later"""
        if not party_name or not party_name.strip():
            raise ValidationError("party_name is required", field="party_name")
        if not bank_name or not bank_name.strip():
            raise ValidationError("bank_name is required", field="bank_name")
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError("Cheque amount must be greater than zero", field="amount")

        cheque = Cheque(
            party_name=party_name.strip(),
            bank_name=bank_name.strip(),
            branch=branch or "",
            amount=Decimal(amount),
            cheque_number=cheque_number or None,
            cheque_date=cheque_date,
            received_date=received_date or date.today(),
            narration=narration or "",
            ledger_company=self.config.cheque_company,
            sync_status=(ChequeSyncStatus.DATE_CONFIRMED.value if cheque_date
                         else ChequeSyncStatus.CREATED.value),
            sync_attempts=0,
            status=ChequeStatus.PENDING.value
        )
        if cheque_date:
            cheque.date_confirmed_at = datetime.utcnow()
        self.db.add(cheque)
        self.db.flush()

        if push_to_ledger:
            self.try_sync(cheque)

        return cheque

    def link_cheque_to_bill(self, cheque_id: int, bill_id: Optional[int], voucher_number: Optional[str],
                            bill_amount: Decimal, allocated_amount: Decimal) -> ChequeBillLink:
        cheque = self.get_cheque(cheque_id)

        if bill_id is None and not voucher_number:
            raise ValidationError("bill_id or voucher_number is required")
        if bill_id is not None:
            bill = self.db.query(Bill).filter(Bill.id == bill_id, Bill.is_deleted == False).first()
            if not bill:
                raise NotFoundError("Bill", bill_id)
            voucher_number = voucher_number or bill.voucher_number
        if bill_amount is None or Decimal(bill_amount) <= 0:
            raise ValidationError("bill_amount must be greater than zero", field="bill_amount")
        if allocated_amount is None or Decimal(allocated_amount) <= 0:
            raise ValidationError("allocated_amount must be greater than zero", field="allocated_amount")

        if self.config.enforce_cheque_allocation:
            already = sum((link.allocated_amount for link in cheque.bill_links), Decimal("0"))
            if already + Decimal(allocated_amount) > cheque.amount:
                raise ValidationError(
                    f"Cheque {cheque.id} over-allocated: {already + Decimal(allocated_amount)} "
                    f"exceeds face amount {cheque.amount}",
                    field="allocated_amount"
                )

        link = ChequeBillLink(
            cheque_id=cheque.id,
            bill_id=bill_id,
            voucher_number=voucher_number,
            bill_amount=Decimal(bill_amount),
            allocated_amount=Decimal(allocated_amount)
        )
        self.db.add(link)
        cheque.bill_links.append(link)
        self.db.flush()
        return link

    def detach_from_voucher(self, voucher_number: str, keep_cheque_ids: Iterable[int] = ()) -> int:
        """
        Drop a voucher's links to cheques that are no longer part of its
        breakdown. A cheque left without links is deleted unless the ledger
        already holds it; those are kept and logged for the operator.
        """
        keep = set(keep_cheque_ids)
        detached = 0
        for link in self.links_for_voucher(voucher_number):
            if link.cheque_id in keep:
                continue
            cheque = link.cheque
            cheque.bill_links.remove(link)
            detached += 1
            if cheque.bill_links:
                continue
            if cheque.is_synced:
                logger.warning(
                    f"Cheque {cheque.id} dropped from {voucher_number} but stays in the ledger "
                    f"as {cheque.ledger_voucher_id}"
                )
            else:
                self.db.delete(cheque)
        self.db.flush()
        if detached:
            logger.info(f"Detached {detached} cheque(s) from {voucher_number}")
        return detached

    def update_cheque_date(self, cheque_id: int, cheque_date: date, cheque_number: str = None) -> Cheque:
        cheque = self.get_cheque(cheque_id)
        self._apply_date(cheque, cheque_date, cheque_number)
        return self._sync_after_date_change(cheque)

    def confirm_cheque_date(self, cheque_id: int, cheque_date: date, cheque_number: str = None,
                            confirmed_by: str = None) -> Cheque:
        """Confirm the date of a cheque taken without one"""
        cheque = self.get_cheque(cheque_id)
        self._apply_date(cheque, cheque_date, cheque_number)
        cheque.date_confirmed_by = confirmed_by
        return self._sync_after_date_change(cheque)

    def _apply_date(self, cheque: Cheque, cheque_date: date, cheque_number: Optional[str]):
        if cheque_date is None:
            raise ValidationError("cheque_date is required", field="cheque_date")

        if cheque.is_synced and cheque.cheque_date != cheque_date:
            logger.warning(
                f"Cheque {cheque.id} already synced as {cheque.ledger_voucher_id}; "
                f"date change to {cheque_date} is local only"
            )

        cheque.cheque_date = cheque_date
        if cheque_number:
            cheque.cheque_number = cheque_number
        cheque.date_confirmed_at = datetime.utcnow()
        if cheque.sync_status == ChequeSyncStatus.CREATED.value:
            cheque.sync_status = ChequeSyncStatus.DATE_CONFIRMED.value
        self.db.flush()

    def _sync_after_date_change(self, cheque: Cheque) -> Cheque:
        synced = self.try_sync(cheque)
        self.db.commit()
        self.event_bus.publish(ChequeDateConfirmed(
            cheque_id=cheque.id,
            party_name=cheque.party_name,
            cheque_date=cheque.cheque_date.isoformat(),
            synced=synced
        ))
        return cheque

    def update_status(self, cheque_id: int, status: str, deposit_date: date = None,
                      clear_date: date = None, bounce_date: date = None,
                      bounce_reason: str = None) -> Cheque:
        """Move a cheque through pending -> deposited -> cleared/bounced"""
        cheque = self.get_cheque(cheque_id)
        if status not in STATUS_TRANSITIONS:
            raise ValidationError(f"Unknown cheque status: {status}", field="status")
        if status == cheque.status:
            return cheque
        if status not in STATUS_TRANSITIONS[cheque.status]:
            raise ValidationError(f"Cannot move cheque from {cheque.status} to {status}", field="status")

        cheque.status = status
        if status == ChequeStatus.DEPOSITED.value:
            cheque.deposit_date = deposit_date or date.today()
        elif status == ChequeStatus.CLEARED.value:
            cheque.clear_date = clear_date or date.today()
        elif status == ChequeStatus.BOUNCED.value:
            cheque.bounce_date = bounce_date or date.today()
            cheque.bounce_reason = bounce_reason or "Unknown"
        self.db.flush()
        return cheque

    def add_breakdown(self, cheque_id: int, bank_name: str, amount: Decimal,
                      cheque_number: str = None, cheque_date: date = None,
                      branch: str = None) -> Cheque:
        """Add another cheque to the bill an existing cheque pays"""
        from ledgerlink.services.bill_payment_service import BillPaymentService

        existing = self.get_cheque(cheque_id)
        if not existing.bill_links:
            raise ValidationError(f"Cheque {cheque_id} is not linked to a bill")
        link = existing.bill_links[0]

        cheque = self.create_cheque(
            party_name=existing.party_name,
            bank_name=bank_name,
            amount=amount,
            cheque_number=cheque_number,
            cheque_date=cheque_date,
            branch=branch,
            narration=f"Breakdown for {link.voucher_number}"
        )
        self.link_cheque_to_bill(cheque.id, link.bill_id, link.voucher_number, link.bill_amount, cheque.amount)

        ledger = BillPaymentService(self.db, self.gateway, self.event_bus, self.config)
        ledger.refresh_cheque_total(link.voucher_number, party_name=existing.party_name,
                                    bill_amount=link.bill_amount, bill_id=link.bill_id)
        return cheque

    # ==================== LEDGER SYNC ====================

    def try_sync(self, cheque: Cheque) -> bool:
        """
        Opportunistic push to the ledger. Never raises for gateway trouble:
        the outcome is recorded on the cheque instead.
        """
        if cheque.is_synced:
            return True
        if cheque.cheque_date is None:
            return False

        cheque.sync_attempts = (cheque.sync_attempts or 0) + 1
        cheque.last_sync_attempt_at = datetime.utcnow()

        try:
            connection = self.gateway.check_connection()
        except GatewayUnavailableError as e:
            self._mark_failed(cheque, str(e))
            return False
        if not connection.connected:
            self._mark_failed(cheque, connection.error or "Ledger not connected. Will sync later.")
            return False

        try:
            result = self.gateway.push_cheque(self._build_push(cheque), self.config.cheque_company)
        except GatewayUnavailableError as e:
            logger.warning(f"Error syncing cheque {cheque.id}: {e}")
            self._mark_failed(cheque, str(e))
            return False

        if not result.success:
            logger.warning(f"Ledger rejected cheque {cheque.id}: {result.error}")
            self._mark_failed(cheque, result.error or "Rejected by ledger")
            return False

        cheque.sync_status = ChequeSyncStatus.SYNCED.value
        cheque.ledger_voucher_id = result.voucher_id
        cheque.ledger_company = self.config.cheque_company
        cheque.sync_error = None
        self.db.flush()
        logger.info(f"Cheque {cheque.id} synced to {self.config.cheque_company} as {result.voucher_id}")
        return True

    def _mark_failed(self, cheque: Cheque, error: str):
        cheque.sync_status = ChequeSyncStatus.SYNC_FAILED.value
        cheque.sync_error = error
        self.db.flush()

    def _build_push(self, cheque: Cheque) -> ChequePush:
        bank = self.db.query(BankName).filter(BankName.short_name == cheque.bank_name).first()
        return ChequePush(
            party_name=cheque.party_name,
            amount=cheque.amount,
            bank_ledger=self.config.cheque_in_hand_ledger,
            cheque_number=cheque.cheque_number or "",
            cheque_date=cheque.cheque_date,
            narration=cheque.narration or f"Cheque from {cheque.party_name}",
            bank_name=bank.full_name if bank else cheque.bank_name
        )

    def sync_cheque(self, cheque_id: int) -> Cheque:
        """Operator retry for a single cheque"""
        cheque = self.get_cheque(cheque_id)
        if cheque.cheque_date is None:
            raise ValidationError(f"Cheque {cheque_id} needs a date before it can be synced", field="cheque_date")
        was_synced = cheque.is_synced
        synced = self.try_sync(cheque)
        self.db.commit()
        if synced and not was_synced:
            self.event_bus.publish(ChequeSynced(
                cheque_id=cheque.id, party_name=cheque.party_name, ledger_voucher_id=cheque.ledger_voucher_id
            ))
        return cheque

    def sync_pending(self) -> Dict:
        """Retry every dated, unsynced cheque"""
        connection = self.gateway.check_connection()
        if not connection.connected:
            raise GatewayUnavailableError(connection.error or "Ledger is not connected. Cannot sync cheques.")

        synced, failed, errors = [], 0, []
        for cheque in self.list_unsynced():
            if self.try_sync(cheque):
                synced.append(cheque)
            else:
                failed += 1
                errors.append({"cheque_id": cheque.id, "error": cheque.sync_error})
        self.db.commit()

        for cheque in synced:
            self.event_bus.publish(ChequeSynced(
                cheque_id=cheque.id, party_name=cheque.party_name, ledger_voucher_id=cheque.ledger_voucher_id
            ))

        return {"synced": len(synced), "failed": failed, "errors": errors}
