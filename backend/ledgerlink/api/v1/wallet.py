"""
Wallet API Routes - QR wallet transactions and bill links
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
from datetime import date
from decimal import Decimal

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.database import get_db
from ledgerlink.core.deps import get_event_bus, get_recon_config, to_http_exception
from ledgerlink.core.events import EventBus
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import (
    WalletTransactionIngest, WalletTransactionResponse, WalletLinkRequest, WalletMatchResponse
)
from ledgerlink.services.wallet_service import WalletService

router = APIRouter(prefix="/wallet", tags=["Wallet"])


def get_wallet_service(
    db: Session = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
    config: ReconConfig = Depends(get_recon_config)
) -> WalletService:
    return WalletService(db, event_bus, config)


@router.post("/transactions")
async def ingest_transactions(
    transactions: List[WalletTransactionIngest],
    service: WalletService = Depends(get_wallet_service)
):
    """Store transactions from the wallet statement feed"""
    created = service.ingest(transactions)
    service.db.commit()
    return {"success": True, "created": created, "skipped": len(transactions) - created}


@router.get("/unmatched", response_model=List[WalletTransactionResponse])
async def list_unmatched(
    limit: int = Query(100, ge=1, le=1000),
    service: WalletService = Depends(get_wallet_service)
):
    return service.list_unmatched(limit)


@router.get("/match", response_model=WalletMatchResponse)
async def find_match(
    amount: Decimal,
    on_date: date,
    service: WalletService = Depends(get_wallet_service)
):
    """Preview the transaction a bill payment would be linked to"""
    txn = service.find_match(amount, on_date)
    if not txn:
        return WalletMatchResponse(matched=False, message=f"No unmatched transaction for Rs. {amount}")
    return WalletMatchResponse(
        matched=True,
        transaction_id=txn.transaction_id,
        amount=txn.amount,
        transaction_date=txn.transaction_date,
        issuer=txn.issuer_name,
        display_description=txn.description
    )


@router.post("/transactions/{transaction_id}/link", response_model=WalletTransactionResponse)
async def link_transaction(
    transaction_id: str,
    data: WalletLinkRequest,
    service: WalletService = Depends(get_wallet_service)
):
    """Manually bind a transaction to a bill"""
    try:
        txn = service.link(transaction_id, data)
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)
    service.db.commit()
    service.publish_linked(txn)
    return txn


@router.get("/bill/{voucher_number}", response_model=List[WalletTransactionResponse])
async def transactions_for_bill(
    voucher_number: str,
    service: WalletService = Depends(get_wallet_service)
):
    return service.list_for_bill(voucher_number)
