"""
Pytest fixtures for the reconciliation test suite.

Provides:
- In-memory SQLite sessions (StaticPool so the API and the test share one connection)
- A scriptable fake ledger gateway
- An event bus that records what was published
- A TestClient wired to all of the above
"""
import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import List

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.database import Base, get_db, init_db
from ledgerlink.core.deps import get_gateway, get_event_bus, get_recon_config
from ledgerlink.core.events import InMemoryEventBus, ReconEvent
from ledgerlink.core.exceptions import GatewayUnavailableError
from ledgerlink.models import Bill, WalletTransaction
from ledgerlink.services.ledger_gateway import (
    LedgerGateway, ConnectionStatus, PushResult, PartyBills, ChequePush
)


class FakeLedgerGateway(LedgerGateway):
    """Ledger stand-in; flip the attributes to script its behaviour"""

    def __init__(self):
        self.connected = True
        self.unavailable = False
        self.reject_with = None
        self.parties: List[PartyBills] = []
        self.pushed: List[ChequePush] = []
        self.check_calls = 0
        self._next_voucher = 1000

    def check_connection(self) -> ConnectionStatus:
        self.check_calls += 1
        if self.unavailable:
            raise GatewayUnavailableError("Ledger timed out after 3.0s")
        if not self.connected:
            return ConnectionStatus(connected=False, error="Ledger not connected. Will sync later.")
        return ConnectionStatus(connected=True)

    def push_cheque(self, cheque: ChequePush, target_company: str) -> PushResult:
        if self.unavailable:
            raise GatewayUnavailableError("Ledger timed out after 30.0s")
        self.pushed.append(cheque)
        if self.reject_with:
            return PushResult(success=False, error=self.reject_with)
        self._next_voucher += 1
        return PushResult(success=True, voucher_id=str(self._next_voucher))

    def get_ledger_bill_allocations(self) -> List[PartyBills]:
        if self.unavailable:
            raise GatewayUnavailableError("Cannot reach ledger")
        return list(self.parties)


class RecordingEventBus(InMemoryEventBus):
    """Delivers like the real bus and keeps every event"""

    def __init__(self):
        super().__init__()
        self.events: List[ReconEvent] = []

    def publish(self, event: ReconEvent) -> None:
        self.events.append(event)
        super().publish(event)

    def names(self) -> List[str]:
        return [event.name for event in self.events]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = factory()
    yield db
    db.close()


@pytest.fixture
def gateway():
    return FakeLedgerGateway()


@pytest.fixture
def event_bus():
    return RecordingEventBus()


@pytest.fixture
def recon_config():
    return ReconConfig()


@pytest.fixture
def client(session, gateway, event_bus, recon_config):
    from ledgerlink.main import app

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_recon_config] = lambda: recon_config
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_bill(session):
    def _create(voucher_number="INV-100", party_name="Sharma Traders",
                amount="10000", voucher_date=date(2024, 4, 1)):
        bill = Bill(
            voucher_number=voucher_number,
            party_name=party_name,
            amount=Decimal(amount),
            voucher_date=voucher_date,
            is_deleted=False
        )
        session.add(bill)
        session.commit()
        return bill
    return _create


@pytest.fixture
def add_wallet_txn(session):
    def _add(transaction_id, amount, when: datetime, issuer_name="PhonePe"):
        txn = WalletTransaction(
            transaction_id=transaction_id,
            amount=Decimal(amount),
            transaction_date=when,
            issuer_name=issuer_name,
            matched=False
        )
        session.add(txn)
        session.commit()
        return txn
    return _add
