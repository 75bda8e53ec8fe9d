"""
Columnar API Routes - daily party-wise payment report
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerlink.core.database import get_db
from ledgerlink.schemas import ColumnarResponse, BillPaymentResponse
from ledgerlink.services.columnar_service import ColumnarService

router = APIRouter(prefix="/columnar", tags=["Columnar"])


@router.get("", response_model=ColumnarResponse)
async def daily_columnar(
    day: Optional[date] = Query(None, alias="date"),
    search: str = "",
    db: Session = Depends(get_db)
):
    """One row per party for the day's bills, with column totals"""
    return ColumnarService(db).daily_rollup(day or date.today(), search)


@router.get("/details", response_model=List[BillPaymentResponse])
async def columnar_details(
    party_name: str = Query(..., alias="party"),
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db)
):
    return ColumnarService(db).party_details(day or date.today(), party_name)
