"""
Outstanding Service - bill-wise receivables cache and ageing analysis
"""
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import datetime
import uuid
import logging

from ledgerlink.models import OutstandingBill, OutstandingSyncState
from ledgerlink.services.ledger_gateway import LedgerGateway

logger = logging.getLogger(__name__)

AGEING_BUCKETS = ("0-30", "30-60", "60-90", "90+")


def ageing_bucket(ageing_days: int) -> str:
    """Half-open day ranges: a bill aged exactly 30 days is in 30-60"""
    if ageing_days < 30:
        return "0-30"
    if ageing_days < 60:
        return "30-60"
    if ageing_days < 90:
        return "60-90"
    return "90+"


class OutstandingService:
    def __init__(self, db: Session, gateway: LedgerGateway = None):
        self.db = db
        self.gateway = gateway

    def _state(self) -> Optional[OutstandingSyncState]:
        return self.db.query(OutstandingSyncState).order_by(OutstandingSyncState.id).first()

    def _active_query(self):
        state = self._state()
        active_batch = state.active_batch if state else None
        return self.db.query(OutstandingBill).filter(OutstandingBill.sync_batch == active_batch)

    def sync_state(self) -> Dict:
        state = self._state()
        if not state:
            return {"synced_at": None, "party_count": 0, "bill_count": 0}
        return {"synced_at": state.synced_at, "party_count": state.party_count, "bill_count": state.bill_count}

    def sync_from_ledger(self) -> Dict:
        """
        Replace the cache with the ledger's current bill allocations.
        The new set is written under a fresh batch id and becomes visible
        when the active-batch pointer flips, in the same commit that drops
        the previous batches.
        """
        parties = self.gateway.get_ledger_bill_allocations()

        batch = uuid.uuid4().hex
        now = datetime.utcnow()
        rows = []
        seen = set()
        for party in parties:
            for bill in party.bills:
                key = (party.party_name, bill.bill_name)
                if key in seen:
                    logger.warning(f"Duplicate outstanding bill {bill.bill_name} for {party.party_name} skipped")
                    continue
                seen.add(key)
                days = max(int(bill.ageing_days or 0), 0)
                rows.append(OutstandingBill(
                    sync_batch=batch,
                    party_name=party.party_name,
                    bill_name=bill.bill_name,
                    bill_date=bill.bill_date,
                    closing_balance=Decimal(bill.closing_balance),
                    credit_period=bill.credit_period or 0,
                    ageing_days=days,
                    ageing_bucket=ageing_bucket(days),
                    synced_at=now
                ))

        try:
            self.db.add_all(rows)
            self.db.flush()

            state = self._state()
            if state is None:
                state = OutstandingSyncState()
                self.db.add(state)
            state.active_batch = batch
            state.party_count = len(parties)
            state.bill_count = len(rows)
            state.synced_at = now
            self.db.flush()

            self.db.query(OutstandingBill).filter(
                OutstandingBill.sync_batch != batch
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Synced {len(rows)} outstanding bills from {len(parties)} parties")
        return {"synced_party_count": len(parties), "synced_bill_count": len(rows)}

    def list_bills(self, party_name: str = None) -> List[OutstandingBill]:
        query = self._active_query()
        if party_name:
            query = query.filter(OutstandingBill.party_name == party_name)
        return query.order_by(OutstandingBill.closing_balance.desc(), OutstandingBill.id).all()

    def ageing_summary(self, overdue_only: bool = False) -> Dict:
        """Closing balances per ageing bucket, every bucket present"""
        query = self._active_query()
        if overdue_only:
            query = query.filter(OutstandingBill.ageing_days > OutstandingBill.credit_period)

        totals = {bucket: {"bills": 0, "parties": set(), "amount": Decimal("0")} for bucket in AGEING_BUCKETS}
        for bill in query.all():
            bucket = totals[ageing_bucket(bill.ageing_days or 0)]
            bucket["bills"] += 1
            bucket["parties"].add(bill.party_name)
            bucket["amount"] += Decimal(bill.closing_balance or 0)

        buckets = [
            {
                "bucket": name,
                "bill_count": totals[name]["bills"],
                "party_count": len(totals[name]["parties"]),
                "total_amount": totals[name]["amount"],
            }
            for name in AGEING_BUCKETS
        ]
        return {
            "overdue_only": overdue_only,
            "buckets": buckets,
            "grand_total": sum((b["total_amount"] for b in buckets), Decimal("0")),
        }

    def party_summary(self) -> List[Dict]:
        state = self._state()
        rows = self.db.query(
            OutstandingBill.party_name,
            func.sum(OutstandingBill.closing_balance),
            func.count(OutstandingBill.id),
            func.min(OutstandingBill.bill_date)
        ).filter(
            OutstandingBill.sync_batch == (state.active_batch if state else None)
        ).group_by(OutstandingBill.party_name).order_by(
            func.sum(OutstandingBill.closing_balance).desc()
        ).all()

        return [
            {
                "party_name": party_name,
                "total_outstanding": Decimal(total or 0),
                "bill_count": count,
                "oldest_bill_date": oldest,
            }
            for party_name, total, count, oldest in rows
        ]
