"""
HTTP ledger gateway: envelope replies, voucher choice and transport failures.
"""
import pytest
import requests
from datetime import date, timedelta
from decimal import Decimal

from ledgerlink.core.exceptions import GatewayUnavailableError
from ledgerlink.services.ledger_gateway import (
    HttpLedgerGateway, ChequePush, parse_ledger_amount, parse_ledger_date
)


class StubResponse:
    def __init__(self, content: str, status_code: int = 200):
        self.content = content.encode("utf-8")
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class StubSession:
    """Replays canned replies and keeps the posted envelopes"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.posted = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.posted.append({"url": url, "body": data.decode("utf-8"), "timeout": timeout})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_gateway(*replies):
    session = StubSession(*replies)
    gateway = HttpLedgerGateway("http://ledger:9000", company_name="Main Co",
                                check_timeout=3.0, push_timeout=30.0, session=session)
    return gateway, session


def push_details(cheque_date):
    return ChequePush(
        party_name="Sharma & Sons",
        amount=Decimal("5000"),
        bank_ledger="Cheque in Hand",
        cheque_number="000123",
        cheque_date=cheque_date,
        narration="",
        bank_name="State Bank of India"
    )


class TestParsing:

    @pytest.mark.parametrize("raw, expected", [
        ("20240401", date(2024, 4, 1)),
        ("1-Apr-2024", date(2024, 4, 1)),
        ("05/04/2024", date(2024, 4, 5)),
        ("", None),
        ("not a date", None),
    ])
    def test_ledger_dates(self, raw, expected):
        assert parse_ledger_date(raw) == expected

    @pytest.mark.parametrize("raw, expected", [
        ("1,25,000.50 Dr", Decimal("125000.50")),
        ("-2500.00", Decimal("-2500.00")),
        (None, Decimal("0")),
        ("Cr", Decimal("0")),
    ])
    def test_ledger_amounts(self, raw, expected):
        assert parse_ledger_amount(raw) == expected


class TestConnection:

    def test_status_one_is_connected(self):
        gateway, session = make_gateway(StubResponse("<ENVELOPE><HEADER><STATUS>1</STATUS></HEADER></ENVELOPE>"))
        assert gateway.check_connection().connected is True
        assert session.posted[0]["timeout"] == 3.0

    def test_timeout_is_not_connected(self):
        gateway, _ = make_gateway(requests.Timeout("read timed out"))
        status = gateway.check_connection()
        assert status.connected is False
        assert "timed out" in status.error

    def test_garbage_reply_is_not_connected(self):
        gateway, _ = make_gateway(StubResponse("<<not xml"))
        assert gateway.check_connection().connected is False


class TestPushCheque:

    def test_current_cheque_is_a_receipt(self):
        reply = StubResponse("<RESPONSE><CREATED>1</CREATED><ALTERED>0</ALTERED><LASTVCHID>4711</LASTVCHID></RESPONSE>")
        gateway, session = make_gateway(reply)

        result = gateway.push_cheque(push_details(date(2024, 4, 1)), "ODBC CHq Mgmt")

        assert result.success is True
        assert result.voucher_id == "4711"
        body = session.posted[0]["body"]
        assert 'VCHTYPE="Receipt"' in body
        assert "<SVCURRENTCOMPANY>ODBC CHq Mgmt</SVCURRENTCOMPANY>" in body
        assert "Sharma &amp; Sons" in body
        assert "<INSTRUMENTDATE>20240401</INSTRUMENTDATE>" in body

    def test_post_dated_cheque_is_a_journal(self):
        reply = StubResponse("<RESPONSE><CREATED>1</CREATED><LASTVCHID>4712</LASTVCHID></RESPONSE>")
        gateway, session = make_gateway(reply)

        gateway.push_cheque(push_details(date.today() + timedelta(days=10)), "ODBC CHq Mgmt")

        body = session.posted[0]["body"]
        assert 'VCHTYPE="Journal"' in body
        assert "PDC Receivable" in body

    def test_rejection_carries_line_error(self):
        reply = StubResponse(
            "<RESPONSE><CREATED>0</CREATED><ALTERED>0</ALTERED>"
            "<LINEERROR>Ledger 'Sharma &amp; Sons' does not exist!</LINEERROR></RESPONSE>"
        )
        gateway, _ = make_gateway(reply)

        result = gateway.push_cheque(push_details(date(2024, 4, 1)), "ODBC CHq Mgmt")
        assert result.success is False
        assert "does not exist" in result.error

    def test_transport_failure_raises(self):
        gateway, _ = make_gateway(requests.ConnectionError("refused"))
        with pytest.raises(GatewayUnavailableError):
            gateway.push_cheque(push_details(date(2024, 4, 1)), "ODBC CHq Mgmt")


class TestBillAllocations:

    def test_parties_and_bills(self):
        today = date.today()
        old = (today - timedelta(days=45)).strftime("%Y%m%d")
        recent = (today - timedelta(days=5)).strftime("%Y%m%d")
        reply = StubResponse(f"""<ENVELOPE><BODY><DATA><COLLECTION>
<LEDGER NAME="Sharma Traders"><CLOSINGBALANCE>-7500.00</CLOSINGBALANCE>
  <BILLALLOCATIONS.LIST><NAME>INV-1</NAME><BILLDATE>{old}</BILLDATE><CLOSINGBALANCE>-5000.00</CLOSINGBALANCE><BILLCREDITPERIOD>30 Days</BILLCREDITPERIOD></BILLALLOCATIONS.LIST>
  <BILLALLOCATIONS.LIST><NAME>INV-2</NAME><BILLDATE>{recent}</BILLDATE><CLOSINGBALANCE>-2500.00</CLOSINGBALANCE></BILLALLOCATIONS.LIST>
  <BILLALLOCATIONS.LIST><NAME>INV-0</NAME><BILLDATE>{recent}</BILLDATE><CLOSINGBALANCE>0</CLOSINGBALANCE></BILLALLOCATIONS.LIST>
</LEDGER>
<LEDGER NAME="Gupta Stores"><CLOSINGBALANCE>-9000.00</CLOSINGBALANCE>
  <BILLALLOCATIONS.LIST><NAME>GS-1</NAME><BILLDATE>{recent}</BILLDATE><CLOSINGBALANCE>-9000.00</CLOSINGBALANCE></BILLALLOCATIONS.LIST>
</LEDGER>
<LEDGER NAME="Settled Co"><CLOSINGBALANCE>0</CLOSINGBALANCE></LEDGER>
</COLLECTION></DATA></BODY></ENVELOPE>""")
        gateway, _ = make_gateway(reply)

        parties = gateway.get_ledger_bill_allocations()

        assert [p.party_name for p in parties] == ["Gupta Stores", "Sharma Traders"]
        sharma = parties[1]
        assert sharma.total_outstanding == Decimal("7500.00")
        assert [b.bill_name for b in sharma.bills] == ["INV-1", "INV-2"]
        assert sharma.bills[0].ageing_days == 45
        assert sharma.bills[0].credit_period == 30
        assert sharma.bills[0].closing_balance == Decimal("5000.00")
