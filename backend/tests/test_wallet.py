"""
QR wallet matching: exact amount, day tolerance, earliest wins, one link per transaction.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.exceptions import AlreadyMatchedError, NotFoundError
from ledgerlink.models import WalletTransaction
from ledgerlink.schemas import WalletLinkRequest, WalletTransactionIngest
from ledgerlink.services.wallet_service import WalletService


@pytest.fixture
def service(session, event_bus, recon_config):
    return WalletService(session, event_bus, recon_config)


def bill(voucher_number="INV-100", **kwargs):
    return WalletLinkRequest(
        voucher_number=voucher_number,
        party_name=kwargs.get("party_name", "Sharma Traders"),
        company_name=kwargs.get("company_name"),
        bill_date=kwargs.get("bill_date", date(2024, 4, 1))
    )


class TestFindMatch:

    def test_amount_must_match_exactly(self, service, add_wallet_txn):
        add_wallet_txn("T-499", "499.99", datetime(2024, 4, 1, 10))
        add_wallet_txn("T-500", "500", datetime(2024, 4, 1, 11))

        assert service.find_match(Decimal("500"), date(2024, 4, 1)).transaction_id == "T-500"
        assert service.find_match(Decimal("501"), date(2024, 4, 1)) is None

    @pytest.mark.parametrize("when, expected", [
        (datetime(2024, 3, 31, 0, 0), True),
        (datetime(2024, 4, 2, 23, 59), True),
        (datetime(2024, 3, 30, 23, 59), False),
        (datetime(2024, 4, 3, 0, 0), False),
    ])
    def test_one_day_tolerance(self, service, add_wallet_txn, when, expected):
        add_wallet_txn("T-1", "750", when)
        match = service.find_match(Decimal("750"), date(2024, 4, 1))
        assert (match is not None) is expected

    def test_zero_tolerance_is_same_day_only(self, session, event_bus, add_wallet_txn):
        service = WalletService(session, event_bus, ReconConfig(wallet_match_tolerance_days=0))
        add_wallet_txn("T-1", "750", datetime(2024, 3, 31, 23, 59))
        assert service.find_match(Decimal("750"), date(2024, 4, 1)) is None

    def test_earliest_candidate_wins(self, service, add_wallet_txn):
        add_wallet_txn("T-late", "300", datetime(2024, 4, 1, 18))
        add_wallet_txn("T-early", "300", datetime(2024, 4, 1, 9))
        assert service.find_match(Decimal("300"), date(2024, 4, 1)).transaction_id == "T-early"

    def test_matched_transactions_are_skipped(self, service, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        add_wallet_txn("T-2", "300", datetime(2024, 4, 1, 10))
        service.link("T-1", bill())

        assert service.find_match(Decimal("300"), date(2024, 4, 1)).transaction_id == "T-2"

    def test_non_positive_amount_never_matches(self, service, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        assert service.find_match(Decimal("0"), date(2024, 4, 1)) is None


class TestLink:

    def test_link_stamps_the_bill(self, service, session, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        txn = service.link("T-1", bill())

        assert txn.matched is True
        assert txn.voucher_number == "INV-100"
        assert txn.party_name == "Sharma Traders"
        assert txn.company_name == "FOR DB"
        assert txn.display_label == "FOR DB | INV-100 | 2024-04-01"
        assert txn.linked_at is not None

    def test_explicit_company_name(self, service, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        txn = service.link("T-1", bill(company_name="Branch 2"))
        assert txn.display_label.startswith("Branch 2 | INV-100")

    def test_second_link_is_refused(self, service, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        service.link("T-1", bill())

        with pytest.raises(AlreadyMatchedError) as exc_info:
            service.link("T-1", bill("INV-200"))
        assert exc_info.value.voucher_number == "INV-100"

    def test_unknown_transaction(self, service):
        with pytest.raises(NotFoundError):
            service.link("T-404", bill())

    def test_link_does_not_publish_before_commit(self, service, event_bus, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        txn = service.link("T-1", bill())
        assert event_bus.events == []

        service.db.commit()
        service.publish_linked(txn)
        assert event_bus.names() == ["wallet-linked"]

    def test_lost_race_reads_as_no_match(self, service, session, add_wallet_txn, monkeypatch):
        txn = add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        candidate = service.find_match(Decimal("300"), date(2024, 4, 1))

        # Another request links the row behind this session's back
        session.query(WalletTransaction).filter(
            WalletTransaction.id == txn.id
        ).update({WalletTransaction.matched: True}, synchronize_session=False)
        monkeypatch.setattr(service, "find_match", lambda amount, on_date: candidate)

        assert service.match_and_link(Decimal("300"), date(2024, 4, 1), bill()) is None


class TestIngest:

    def test_known_ids_are_skipped(self, service, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        created = service.ingest([
            WalletTransactionIngest(transaction_id="T-1", amount=Decimal("300"),
                                    transaction_date=datetime(2024, 4, 1, 9)),
            WalletTransactionIngest(transaction_id="T-2", amount=Decimal("450"),
                                    transaction_date=datetime(2024, 4, 1, 12), issuer_name="GPay"),
        ])
        assert created == 1
        assert [t.transaction_id for t in service.list_unmatched()] == ["T-2", "T-1"]
