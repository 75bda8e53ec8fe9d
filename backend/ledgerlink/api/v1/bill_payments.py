"""
Bill Payment API Routes - record and inspect multi-instrument payments
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.database import get_db
from ledgerlink.core.deps import get_gateway, get_event_bus, get_recon_config, to_http_exception
from ledgerlink.core.events import EventBus
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import (
    RecordBillPaymentRequest, RecordBillPaymentResponse, BillPaymentResponse,
    BillPaymentDetail, CreatedChequeResponse, WalletMatchResponse,
    ChequeResponse, WalletTransactionResponse
)
from ledgerlink.services.bill_payment_service import BillPaymentService
from ledgerlink.services.ledger_gateway import LedgerGateway

router = APIRouter(prefix="/bill-payments", tags=["Bill Payments"])


def _service(db: Session, gateway: LedgerGateway, event_bus: EventBus, config: ReconConfig) -> BillPaymentService:
    return BillPaymentService(db, gateway, event_bus, config)


@router.post("", response_model=RecordBillPaymentResponse)
def record_bill_payment(
    data: RecordBillPaymentRequest,
    db: Session = Depends(get_db),
    gateway: LedgerGateway = Depends(get_gateway),
    event_bus: EventBus = Depends(get_event_bus),
    config: ReconConfig = Depends(get_recon_config)
):
    """Create or replace the payment breakdown of a bill"""
    service = _service(db, gateway, event_bus, config)
    try:
        result = service.record_payment(data)
    except ReconError as e:
        db.rollback()
        raise to_http_exception(e)

    created = [
        CreatedChequeResponse(
            id=cheque.id,
            amount=cheque.amount,
            needs_date_confirm=cheque.needs_date_confirm,
            synced=cheque.is_synced,
            sync_status=cheque.sync_status,
            sync_error=cheque.sync_error
        )
        for cheque in result.created_cheques
    ]

    wallet_match = None
    if result.wallet_requested:
        txn = result.wallet_match
        if txn:
            wallet_match = WalletMatchResponse(
                matched=True,
                transaction_id=txn.transaction_id,
                amount=txn.amount,
                transaction_date=txn.transaction_date,
                issuer=txn.issuer_name,
                display_description=txn.display_label
            )
        else:
            wallet_match = WalletMatchResponse(
                matched=False,
                message=f"No matching wallet transaction for Rs. {result.payment.wallet_amount}"
            )

    return RecordBillPaymentResponse(
        message=result.message,
        status=result.payment.payment_status,
        payment=BillPaymentResponse.model_validate(result.payment),
        created_cheques=created or None,
        wallet_match=wallet_match
    )


@router.get("/partial", response_model=List[BillPaymentResponse])
async def list_partial_payments(
    db: Session = Depends(get_db),
    gateway: LedgerGateway = Depends(get_gateway),
    event_bus: EventBus = Depends(get_event_bus),
    config: ReconConfig = Depends(get_recon_config)
):
    """Bills with a balance still due"""
    return _service(db, gateway, event_bus, config).list_partial_payments()


@router.get("/{voucher_number}", response_model=BillPaymentDetail)
async def get_bill_payment(
    voucher_number: str,
    db: Session = Depends(get_db),
    gateway: LedgerGateway = Depends(get_gateway),
    event_bus: EventBus = Depends(get_event_bus),
    config: ReconConfig = Depends(get_recon_config)
):
    """Payment record with its cheques and linked wallet transactions"""
    service = _service(db, gateway, event_bus, config)
    try:
        payment = service.get_payment(voucher_number)
    except ReconError as e:
        raise to_http_exception(e)

    return BillPaymentDetail(
        payment=BillPaymentResponse.model_validate(payment),
        cheques=[ChequeResponse.model_validate(c) for c in service.cheques.cheques_for_voucher(voucher_number)],
        wallet_transactions=[
            WalletTransactionResponse.model_validate(t) for t in service.wallet.list_for_bill(voucher_number)
        ]
    )
