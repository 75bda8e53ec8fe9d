"""
Event Bus - typed reconciliation events for dashboards and notifiers
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconEvent:
    """Base class for published events"""
    name = "recon:event"

    def to_message(self) -> dict:
        data = {}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                value = float(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            data[key] = value
        return {"event": self.name, "data": data}


@dataclass(frozen=True)
class PaymentRecorded(ReconEvent):
    name = "payment-recorded"

    voucher_number: str
    party_name: str
    total_paid: Decimal
    balance_due: Decimal
    status: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class ChequeSynced(ReconEvent):
    name = "cheque-synced"

    cheque_id: int
    party_name: str
    ledger_voucher_id: Optional[str]
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class ChequeDateConfirmed(ReconEvent):
    name = "cheque-date-confirmed"

    cheque_id: int
    party_name: str
    cheque_date: str
    synced: bool
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class WalletTransactionLinked(ReconEvent):
    name = "wallet-linked"

    transaction_id: str
    voucher_number: str
    party_name: str
    amount: Decimal
    occurred_at: datetime = field(default_factory=datetime.utcnow)


EventHandler = Callable[[ReconEvent], None]


class EventBus:
    """Publish/subscribe channel the services depend on"""

    def publish(self, event: ReconEvent) -> None:
        raise NotImplementedError

    def subscribe(self, handler: EventHandler) -> None:
        raise NotImplementedError

    def unsubscribe(self, handler: EventHandler) -> None:
        raise NotImplementedError


class InMemoryEventBus(EventBus):
    """
    Delivers each event synchronously to every subscriber.
    Delivery is fire-and-forget: a failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: ReconEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"Event subscriber failed for {event.name}: {e}")
