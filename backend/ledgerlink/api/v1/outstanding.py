"""
Outstanding API Routes - receivables cache and ageing analysis
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ledgerlink.core.database import get_db
from ledgerlink.core.deps import get_gateway, to_http_exception
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import (
    OutstandingBillResponse, OutstandingSyncResponse, AgeingSummaryResponse, PartyOutstanding
)
from ledgerlink.services.ledger_gateway import LedgerGateway
from ledgerlink.services.outstanding_service import OutstandingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/outstanding", tags=["Outstanding"])


@router.post("/sync", response_model=OutstandingSyncResponse)
def sync_outstanding(
    db: Session = Depends(get_db),
    gateway: LedgerGateway = Depends(get_gateway)
):
    """Replace the local cache with the ledger's bill allocations"""
    try:
        result = OutstandingService(db, gateway).sync_from_ledger()
    except ReconError as e:
        logger.error(f"Outstanding sync failed: {e}")
        raise to_http_exception(e)
    return OutstandingSyncResponse(
        message=f"Synced {result['synced_bill_count']} bills for {result['synced_party_count']} parties",
        **result
    )


@router.get("", response_model=List[OutstandingBillResponse])
async def list_outstanding(
    party_name: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return OutstandingService(db).list_bills(party_name)


@router.get("/ageing", response_model=AgeingSummaryResponse)
async def ageing_summary(
    overdue_only: bool = False,
    db: Session = Depends(get_db)
):
    """Totals per ageing bucket; overdue means aged past the credit period"""
    return OutstandingService(db).ageing_summary(overdue_only)


@router.get("/parties", response_model=List[PartyOutstanding])
async def party_outstanding(db: Session = Depends(get_db)):
    return OutstandingService(db).party_summary()


@router.get("/status")
async def sync_status(db: Session = Depends(get_db)):
    """When the cache was last refreshed"""
    return OutstandingService(db).sync_state()
