"""
Ledger Gateway - boundary to the external accounting system
Talks XML over HTTP; every call is bounded by a timeout.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional
from xml.etree import ElementTree
from xml.sax.saxutils import escape
import logging

import requests
from dateutil import parser as date_parser

from ledgerlink.core.exceptions import GatewayUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStatus:
    connected: bool
    error: Optional[str] = None


@dataclass
class ChequePush:
    party_name: str
    amount: Decimal
    bank_ledger: str
    cheque_number: str
    cheque_date: date
    narration: str
    bank_name: Optional[str] = None


@dataclass
class PushResult:
    success: bool
    voucher_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class LedgerBill:
    bill_name: str
    bill_date: Optional[date]
    closing_balance: Decimal
    credit_period: int = 0
    ageing_days: int = 0
    ageing_bucket: Optional[str] = None


@dataclass
class PartyBills:
    party_name: str
    total_outstanding: Decimal
    bills: List[LedgerBill] = field(default_factory=list)


class LedgerGateway:
    """Operations the reconciliation core needs from the ledger system"""

    def check_connection(self) -> ConnectionStatus:
        raise NotImplementedError

    def push_cheque(self, cheque: ChequePush, target_company: str) -> PushResult:
        raise NotImplementedError

    def get_ledger_bill_allocations(self) -> List[PartyBills]:
        raise NotImplementedError


def format_ledger_date(value: date) -> str:
    return value.strftime("%Y%m%d")


def parse_ledger_date(value: Optional[str]) -> Optional[date]:
    """Parse the ledger's YYYYMMDD or '1-Apr-2024' style dates"""
    if not value:
        return None
    value = value.strip()
    if len(value) == 8 and value.isdigit():
        return datetime.strptime(value, "%Y%m%d").date()
    try:
        return date_parser.parse(value, dayfirst=True).date()
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable ledger date: {value!r}")
        return None


def parse_ledger_amount(value: Optional[str]) -> Decimal:
    """Ledger amounts carry Dr/Cr suffixes and thousands separators"""
    if not value:
        return Decimal("0")
    cleaned = "".join(ch for ch in value if ch.isdigit() or ch in ".-")
    try:
        return Decimal(cleaned) if cleaned else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def _count(value: Optional[str]) -> int:
    digits = "".join(ch for ch in (value or "") if ch.isdigit())
    return int(digits) if digits else 0


class HttpLedgerGateway(LedgerGateway):
    def __init__(self, base_url: str, company_name: str = "",
                 check_timeout: float = 3.0, push_timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.company_name = company_name
        self.check_timeout = check_timeout
        self.push_timeout = push_timeout
        self.session = session or requests.Session()

    def _post(self, xml: str, timeout: float) -> ElementTree.Element:
        try:
            response = self.session.post(
                self.base_url,
                data=xml.encode("utf-8"),
                headers={"Content-Type": "text/xml;charset=UTF-8"},
                timeout=timeout
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise GatewayUnavailableError(f"Ledger timed out after {timeout}s") from e
        except requests.RequestException as e:
            raise GatewayUnavailableError(f"Cannot reach ledger at {self.base_url}: {e}") from e

        try:
            return ElementTree.fromstring(response.content)
        except ElementTree.ParseError as e:
            raise GatewayUnavailableError(f"Unreadable ledger reply: {e}") from e

    def _company_var(self, company: Optional[str]) -> str:
        if not company:
            return ""
        return f"<SVCURRENTCOMPANY>{escape(company)}</SVCURRENTCOMPANY>"

    def check_connection(self) -> ConnectionStatus:
        xml = """<ENVELOPE>
<HEADER><VERSION>1</VERSION><TALLYREQUEST>Export</TALLYREQUEST><TYPE>Collection</TYPE><ID>TestConn</ID></HEADER>
<BODY><DESC><STATICVARIABLES><SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT></STATICVARIABLES>
<TDL><TDLMESSAGE><COLLECTION NAME="TestConn"><TYPE>Company</TYPE><FETCH>NAME</FETCH></COLLECTION></TDLMESSAGE></TDL>
</DESC></BODY></ENVELOPE>"""
        try:
            root = self._post(xml, self.check_timeout)
        except GatewayUnavailableError as e:
            return ConnectionStatus(connected=False, error=str(e))

        status = root.findtext("HEADER/STATUS")
        if status == "1":
            return ConnectionStatus(connected=True)
        return ConnectionStatus(connected=False, error=f"Ledger replied with status {status!r}")

    def push_cheque(self, cheque: ChequePush, target_company: str) -> PushResult:
        """Push a receipt, or a post-dated journal when the cheque date is in the future"""
        amount = abs(cheque.amount)
        party = escape(cheque.party_name)
        narration = escape(cheque.narration or f"Cheque {cheque.cheque_number} from {cheque.party_name}")
        cheque_date = format_ledger_date(cheque.cheque_date)

        if cheque.cheque_date > date.today():
            voucher = f"""<VOUCHER VCHTYPE="Journal" ACTION="Create">
<DATE>{format_ledger_date(date.today())}</DATE>
<VOUCHERTYPENAME>Journal</VOUCHERTYPENAME>
<NARRATION>{narration} (PDC due {cheque_date})</NARRATION>
<ALLLEDGERENTRIES.LIST><LEDGERNAME>PDC Receivable</LEDGERNAME><ISDEEMEDPOSITIVE>Yes</ISDEEMEDPOSITIVE><AMOUNT>-{amount}</AMOUNT></ALLLEDGERENTRIES.LIST>
<ALLLEDGERENTRIES.LIST><LEDGERNAME>{party}</LEDGERNAME><ISDEEMEDPOSITIVE>No</ISDEEMEDPOSITIVE><AMOUNT>{amount}</AMOUNT></ALLLEDGERENTRIES.LIST>
</VOUCHER>"""
        else:
            voucher = f"""<VOUCHER VCHTYPE="Receipt" ACTION="Create">
<DATE>{cheque_date}</DATE>
<VOUCHERTYPENAME>Receipt</VOUCHERTYPENAME>
<NARRATION>{narration}</NARRATION>
<PARTYLEDGERNAME>{party}</PARTYLEDGERNAME>
<ALLLEDGERENTRIES.LIST>
<LEDGERNAME>{escape(cheque.bank_ledger)}</LEDGERNAME><ISDEEMEDPOSITIVE>Yes</ISDEEMEDPOSITIVE><AMOUNT>-{amount}</AMOUNT>
<BANKALLOCATIONS.LIST><INSTRUMENTNUMBER>{escape(cheque.cheque_number or '')}</INSTRUMENTNUMBER><INSTRUMENTDATE>{cheque_date}</INSTRUMENTDATE><BANKNAME>{escape(cheque.bank_name or '')}</BANKNAME><AMOUNT>-{amount}</AMOUNT></BANKALLOCATIONS.LIST>
</ALLLEDGERENTRIES.LIST>
<ALLLEDGERENTRIES.LIST><LEDGERNAME>{party}</LEDGERNAME><ISDEEMEDPOSITIVE>No</ISDEEMEDPOSITIVE><AMOUNT>{amount}</AMOUNT></ALLLEDGERENTRIES.LIST>
</VOUCHER>"""

        xml = f"""<ENVELOPE>
<HEADER><VERSION>1</VERSION><TALLYREQUEST>Import</TALLYREQUEST><TYPE>Data</TYPE><ID>Vouchers</ID></HEADER>
<BODY><DESC><STATICVARIABLES>{self._company_var(target_company)}</STATICVARIABLES></DESC>
<DATA><TALLYMESSAGE>{voucher}</TALLYMESSAGE></DATA></BODY></ENVELOPE>"""

        root = self._post(xml, self.push_timeout)
        return self._parse_import_response(root)

    def _parse_import_response(self, root: ElementTree.Element) -> PushResult:
        result = root if root.tag == "RESPONSE" else root.find(".//IMPORTRESULT")
        if result is None:
            return PushResult(success=False, error="Ledger reply carried no import result")

        created = _count(result.findtext("CREATED"))
        altered = _count(result.findtext("ALTERED"))
        if created > 0 or altered > 0:
            return PushResult(success=True, voucher_id=result.findtext("LASTVCHID"))

        line_error = result.findtext("LINEERROR") or root.findtext(".//LINEERROR")
        return PushResult(success=False, error=line_error or "No voucher was created")

    def get_ledger_bill_allocations(self) -> List[PartyBills]:
        xml = f"""<ENVELOPE>
<HEADER><VERSION>1</VERSION><TALLYREQUEST>Export</TALLYREQUEST><TYPE>Collection</TYPE><ID>LedgerBills</ID></HEADER>
<BODY><DESC><STATICVARIABLES><SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>{self._company_var(self.company_name)}</STATICVARIABLES>
<TDL><TDLMESSAGE>
<COLLECTION NAME="LedgerBills" ISMODIFY="No"><TYPE>Ledger</TYPE><CHILDOF>Sundry Debtors</CHILDOF><BELONGSTO>Yes</BELONGSTO>
<FETCH>NAME,CLOSINGBALANCE,BILLALLOCATIONS.LIST</FETCH><FILTER>HasBalance</FILTER></COLLECTION>
<SYSTEM TYPE="Formulae" NAME="HasBalance">$$IsNotEqual:$CLOSINGBALANCE:0</SYSTEM>
</TDLMESSAGE></TDL></DESC></BODY></ENVELOPE>"""

        root = self._post(xml, self.push_timeout)
        today = date.today()
        parties = []

        for ledger in root.iter("LEDGER"):
            name = ledger.get("NAME") or ledger.findtext("NAME") or ""
            closing = parse_ledger_amount(ledger.findtext("CLOSINGBALANCE"))
            if not name or closing == 0:
                continue

            bills = []
            for alloc in ledger.iter("BILLALLOCATIONS.LIST"):
                bill_closing = parse_ledger_amount(alloc.findtext("CLOSINGBALANCE"))
                if bill_closing == 0:
                    continue
                bill_date = parse_ledger_date(alloc.findtext("BILLDATE"))
                credit_period = _count(alloc.findtext("BILLCREDITPERIOD"))
                bills.append(LedgerBill(
                    bill_name=alloc.findtext("NAME") or "",
                    bill_date=bill_date,
                    closing_balance=abs(bill_closing),
                    credit_period=credit_period,
                    ageing_days=(today - bill_date).days if bill_date else 0
                ))

            parties.append(PartyBills(party_name=name, total_outstanding=abs(closing), bills=bills))

        return sorted(parties, key=lambda p: p.total_outstanding, reverse=True)
