"""
Cheque API Routes - cheque register, date confirmation, ledger sync, deposit status
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerlink.core.config import ReconConfig
from ledgerlink.core.database import get_db
from ledgerlink.core.deps import get_gateway, get_event_bus, get_recon_config, to_http_exception
from ledgerlink.core.events import EventBus
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import (
    ChequeCreate, ChequeBreakdownCreate, ChequeLinkRequest, ChequeDateUpdate,
    ChequeStatusUpdate, ChequeResponse, ChequeWithLinks, ChequeLinkResponse,
    ChequeStatusEnum, ChequeSyncStatusEnum
)
from ledgerlink.services.cheque_service import ChequeService
from ledgerlink.services.ledger_gateway import LedgerGateway

router = APIRouter(prefix="/cheques", tags=["Cheques"])


def get_cheque_service(
    db: Session = Depends(get_db),
    gateway: LedgerGateway = Depends(get_gateway),
    event_bus: EventBus = Depends(get_event_bus),
    config: ReconConfig = Depends(get_recon_config)
) -> ChequeService:
    return ChequeService(db, gateway, event_bus, config)


# ==================== CHEQUE REGISTER ====================

@router.post("", response_model=ChequeWithLinks, status_code=status.HTTP_201_CREATED)
def create_cheque(
    data: ChequeCreate,
    service: ChequeService = Depends(get_cheque_service)
):
    """Create a cheque, optionally linked to a bill; dated cheques are pushed to the ledger"""
    try:
        cheque = service.create_cheque(
            party_name=data.party_name,
            bank_name=data.bank_name,
            amount=data.amount,
            cheque_number=data.cheque_number,
            cheque_date=data.cheque_date,
            branch=data.branch,
            narration=data.narration,
            received_date=data.received_date,
            push_to_ledger=False
        )
        if data.bill_id is not None or data.voucher_number:
            service.link_cheque_to_bill(
                cheque.id, data.bill_id, data.voucher_number,
                data.bill_amount if data.bill_amount is not None else data.amount,
                data.amount
            )
        service.try_sync(cheque)
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)

    service.db.commit()
    return ChequeWithLinks.model_validate(service.get_by_id(cheque.id))


@router.get("", response_model=List[ChequeResponse])
async def list_cheques(
    cheque_status: Optional[ChequeStatusEnum] = Query(None, alias="status"),
    party_name: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    sync_status: Optional[ChequeSyncStatusEnum] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    service: ChequeService = Depends(get_cheque_service)
):
    return service.list_cheques(
        status=cheque_status.value if cheque_status else None,
        party_name=party_name,
        from_date=from_date,
        to_date=to_date,
        sync_status=sync_status.value if sync_status else None,
        limit=limit
    )


@router.get("/pending-dates")
async def list_pending_dates(service: ChequeService = Depends(get_cheque_service)):
    """Undated cheques grouped by the bill they pay"""
    groups = service.list_pending_dates()
    return {"success": True, "count": sum(len(g["cheques"]) for g in groups), "bills": groups}


@router.get("/unsynced", response_model=List[ChequeResponse])
async def list_unsynced(service: ChequeService = Depends(get_cheque_service)):
    return service.list_unsynced()


@router.get("/due", response_model=List[ChequeResponse])
async def list_due_for_deposit(
    as_of: Optional[date] = None,
    service: ChequeService = Depends(get_cheque_service)
):
    """Pending cheques whose date has arrived"""
    return service.list_due_for_deposit(as_of)


@router.get("/summary")
async def cheque_summary(service: ChequeService = Depends(get_cheque_service)):
    return service.summary()


@router.get("/party/{party_name}")
async def party_cheques(
    party_name: str,
    service: ChequeService = Depends(get_cheque_service)
):
    result = service.party_summary(party_name)
    result["cheques"] = [ChequeResponse.model_validate(c) for c in result["cheques"]]
    return result


@router.get("/bill/{voucher_number}", response_model=List[ChequeResponse])
async def cheques_for_bill(
    voucher_number: str,
    service: ChequeService = Depends(get_cheque_service)
):
    return service.cheques_for_voucher(voucher_number)


@router.post("/sync-pending")
def sync_pending_cheques(service: ChequeService = Depends(get_cheque_service)):
    """Retry every dated cheque the ledger has not accepted"""
    try:
        result = service.sync_pending()
    except ReconError as e:
        raise to_http_exception(e)
    return {"success": True, **result}


# ==================== SINGLE CHEQUE ====================

@router.get("/{cheque_id}", response_model=ChequeWithLinks)
async def get_cheque(
    cheque_id: int,
    service: ChequeService = Depends(get_cheque_service)
):
    try:
        return service.get_cheque(cheque_id)
    except ReconError as e:
        raise to_http_exception(e)


@router.post("/{cheque_id}/link", response_model=ChequeLinkResponse, status_code=status.HTTP_201_CREATED)
async def link_cheque(
    cheque_id: int,
    data: ChequeLinkRequest,
    service: ChequeService = Depends(get_cheque_service)
):
    """Allocate part or all of a cheque to a bill"""
    try:
        link = service.link_cheque_to_bill(
            cheque_id, data.bill_id, data.voucher_number, data.bill_amount, data.allocated_amount
        )
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)
    service.db.commit()
    return link


@router.put("/{cheque_id}/date", response_model=ChequeResponse)
def update_cheque_date(
    cheque_id: int,
    data: ChequeDateUpdate,
    service: ChequeService = Depends(get_cheque_service)
):
    try:
        return service.update_cheque_date(cheque_id, data.cheque_date, data.cheque_number)
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)


@router.put("/{cheque_id}/confirm-date", response_model=ChequeResponse)
def confirm_cheque_date(
    cheque_id: int,
    data: ChequeDateUpdate,
    service: ChequeService = Depends(get_cheque_service)
):
    """Set the date of a cheque taken undated, then try the ledger"""
    try:
        return service.confirm_cheque_date(cheque_id, data.cheque_date, data.cheque_number, data.confirmed_by)
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)


@router.post("/{cheque_id}/sync", response_model=ChequeResponse)
def sync_cheque(
    cheque_id: int,
    service: ChequeService = Depends(get_cheque_service)
):
    try:
        return service.sync_cheque(cheque_id)
    except ReconError as e:
        raise to_http_exception(e)


@router.post("/{cheque_id}/breakdown", response_model=ChequeWithLinks, status_code=status.HTTP_201_CREATED)
def add_cheque_breakdown(
    cheque_id: int,
    data: ChequeBreakdownCreate,
    service: ChequeService = Depends(get_cheque_service)
):
    """Add another cheque against the bill this cheque pays"""
    try:
        cheque = service.add_breakdown(
            cheque_id, data.bank_name, data.amount,
            cheque_number=data.cheque_number, cheque_date=data.cheque_date, branch=data.branch
        )
    except ReconError as e:
        service.db.rollback()
        raise to_http_exception(e)
    return ChequeWithLinks.model_validate(service.get_by_id(cheque.id))


@router.put("/{cheque_id}/status", response_model=ChequeResponse)
async def update_cheque_status(
    cheque_id: int,
    data: ChequeStatusUpdate,
    service: ChequeService = Depends(get_cheque_service)
):
    try:
        cheque = service.update_status(
            cheque_id, data.status.value,
            deposit_date=data.deposit_date, clear_date=data.clear_date,
            bounce_date=data.bounce_date, bounce_reason=data.bounce_reason
        )
    except ReconError as e:
        raise to_http_exception(e)
    service.db.commit()
    return cheque
