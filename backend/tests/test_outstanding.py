"""
Outstanding receivables cache: bucket boundaries, full replacement on sync, ageing summary.
"""
import pytest
from datetime import date
from decimal import Decimal

from ledgerlink.core.exceptions import GatewayUnavailableError
from ledgerlink.models import OutstandingBill
from ledgerlink.services.ledger_gateway import LedgerBill, PartyBills
from ledgerlink.services.outstanding_service import OutstandingService, ageing_bucket


@pytest.fixture
def service(session, gateway):
    return OutstandingService(session, gateway)


def party(name, *bills):
    total = sum((Decimal(b.closing_balance) for b in bills), Decimal("0"))
    return PartyBills(party_name=name, total_outstanding=total, bills=list(bills))


def ledger_bill(name, amount, ageing_days, credit_period=0):
    return LedgerBill(
        bill_name=name,
        bill_date=date(2024, 1, 1),
        closing_balance=Decimal(amount),
        credit_period=credit_period,
        ageing_days=ageing_days
    )


@pytest.mark.parametrize("days, bucket", [
    (0, "0-30"),
    (29, "0-30"),
    (30, "30-60"),
    (59, "30-60"),
    (60, "60-90"),
    (89, "60-90"),
    (90, "90+"),
    (400, "90+"),
])
def test_ageing_bucket_boundaries(days, bucket):
    assert ageing_bucket(days) == bucket


class TestSync:

    def test_sync_loads_ledger_bills(self, service, gateway):
        gateway.parties = [
            party("Sharma Traders", ledger_bill("INV-1", "5000", 12), ledger_bill("INV-2", "2500", 45)),
            party("Gupta Stores", ledger_bill("GS-9", "800", 95)),
        ]

        result = service.sync_from_ledger()

        assert result == {"synced_party_count": 2, "synced_bill_count": 3}
        buckets = {b.bill_name: b.ageing_bucket for b in service.list_bills()}
        assert buckets == {"INV-1": "0-30", "INV-2": "30-60", "GS-9": "90+"}
        assert service.sync_state()["bill_count"] == 3

    def test_resync_leaves_no_residue(self, service, session, gateway):
        gateway.parties = [party("Sharma Traders", ledger_bill("INV-1", "5000", 12))]
        service.sync_from_ledger()

        gateway.parties = [party("Gupta Stores", ledger_bill("GS-9", "800", 5))]
        service.sync_from_ledger()

        assert session.query(OutstandingBill).count() == 1
        assert [b.bill_name for b in service.list_bills()] == ["GS-9"]

    def test_failed_sync_keeps_previous_cache(self, service, gateway):
        gateway.parties = [party("Sharma Traders", ledger_bill("INV-1", "5000", 12))]
        service.sync_from_ledger()

        gateway.unavailable = True
        with pytest.raises(GatewayUnavailableError):
            service.sync_from_ledger()

        assert [b.bill_name for b in service.list_bills()] == ["INV-1"]

    def test_duplicate_bills_are_skipped(self, service, gateway):
        gateway.parties = [
            party("Sharma Traders", ledger_bill("INV-1", "5000", 12), ledger_bill("INV-1", "5000", 12)),
        ]
        assert service.sync_from_ledger()["synced_bill_count"] == 1

    def test_negative_ageing_is_clamped(self, service, gateway):
        gateway.parties = [party("Sharma Traders", ledger_bill("INV-1", "100", -3))]
        service.sync_from_ledger()
        bill = service.list_bills()[0]
        assert bill.ageing_days == 0
        assert bill.ageing_bucket == "0-30"

    def test_empty_cache_before_first_sync(self, service):
        assert service.list_bills() == []
        assert service.sync_state()["synced_at"] is None


class TestAgeingSummary:

    @pytest.fixture(autouse=True)
    def loaded(self, service, gateway):
        gateway.parties = [
            party("Sharma Traders",
                  ledger_bill("INV-1", "5000", 12, credit_period=30),
                  ledger_bill("INV-2", "2500", 45, credit_period=30)),
            party("Gupta Stores",
                  ledger_bill("GS-1", "800", 95, credit_period=0),
                  ledger_bill("GS-2", "200", 31, credit_period=60)),
        ]
        service.sync_from_ledger()

    def test_every_bucket_is_reported(self, service):
        summary = service.ageing_summary()

        by_bucket = {b["bucket"]: b for b in summary["buckets"]}
        assert list(by_bucket) == ["0-30", "30-60", "60-90", "90+"]
        assert by_bucket["30-60"]["bill_count"] == 2
        assert by_bucket["30-60"]["party_count"] == 2
        assert by_bucket["30-60"]["total_amount"] == Decimal("2700")
        assert by_bucket["60-90"]["bill_count"] == 0
        assert summary["grand_total"] == Decimal("8500")

    def test_overdue_only_uses_credit_period(self, service):
        summary = service.ageing_summary(overdue_only=True)

        assert summary["overdue_only"] is True
        assert summary["grand_total"] == Decimal("3300")
        by_bucket = {b["bucket"]: b["total_amount"] for b in summary["buckets"]}
        assert by_bucket["0-30"] == Decimal("0")
        assert by_bucket["30-60"] == Decimal("2500")

    def test_party_summary_sorted_by_exposure(self, service):
        parties = service.party_summary()
        assert [p["party_name"] for p in parties] == ["Sharma Traders", "Gupta Stores"]
        assert parties[0]["total_outstanding"] == Decimal("7500")
        assert parties[1]["bill_count"] == 2
