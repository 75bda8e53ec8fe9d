"""
Bill API Routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ledgerlink.core.database import get_db
from ledgerlink.core.deps import to_http_exception
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import BillCreate, BillResponse
from ledgerlink.services.bill_service import BillService

router = APIRouter(prefix="/bills", tags=["Bills"])


@router.post("", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def register_bill(
    bill_data: BillCreate,
    db: Session = Depends(get_db)
):
    """Register a bill raised by the billing workflow"""
    try:
        bill = BillService(db).register_bill(bill_data)
    except ReconError as e:
        raise to_http_exception(e)
    db.commit()
    db.refresh(bill)
    return bill


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: int,
    db: Session = Depends(get_db)
):
    try:
        return BillService(db).get_bill(bill_id)
    except ReconError as e:
        raise to_http_exception(e)


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: int,
    db: Session = Depends(get_db)
):
    """Soft delete; payment history stays intact"""
    try:
        BillService(db).soft_delete_bill(bill_id)
    except ReconError as e:
        raise to_http_exception(e)
    db.commit()
    return {"message": "Bill deleted successfully"}
