# Services Package
from ledgerlink.services.ledger_gateway import LedgerGateway, HttpLedgerGateway
from ledgerlink.services.bill_service import BillService
from ledgerlink.services.bill_payment_service import BillPaymentService, PaymentResult
from ledgerlink.services.cheque_service import ChequeService
from ledgerlink.services.wallet_service import WalletService
from ledgerlink.services.outstanding_service import OutstandingService, ageing_bucket
from ledgerlink.services.columnar_service import ColumnarService
from ledgerlink.services.bank_name_service import BankNameService

__all__ = [
    'LedgerGateway',
    'HttpLedgerGateway',
    'BillService',
    'BillPaymentService',
    'PaymentResult',
    'ChequeService',
    'WalletService',
    'OutstandingService',
    'ageing_bucket',
    'ColumnarService',
    'BankNameService',
]
