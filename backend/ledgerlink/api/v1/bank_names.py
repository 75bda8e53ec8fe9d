"""
Bank Name API Routes - short name mapping used on cheque vouchers
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from ledgerlink.core.database import get_db
from ledgerlink.core.deps import to_http_exception
from ledgerlink.core.exceptions import ReconError
from ledgerlink.schemas import BankNameCreate, BankNameResponse
from ledgerlink.services.bank_name_service import BankNameService

router = APIRouter(prefix="/bank-names", tags=["Bank Names"])


@router.get("", response_model=List[BankNameResponse])
async def list_bank_names(db: Session = Depends(get_db)):
    return BankNameService(db).get_all()


@router.get("/lookup/{short_name}", response_model=BankNameResponse)
async def lookup_bank_name(short_name: str, db: Session = Depends(get_db)):
    bank = BankNameService(db).lookup(short_name)
    if not bank:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bank name not found")
    return bank


@router.post("", response_model=BankNameResponse, status_code=status.HTTP_201_CREATED)
async def create_bank_name(data: BankNameCreate, db: Session = Depends(get_db)):
    try:
        bank = BankNameService(db).create(data.short_name, data.full_name)
    except ReconError as e:
        raise to_http_exception(e)
    db.commit()
    db.refresh(bank)
    return bank


@router.put("/{bank_id}", response_model=BankNameResponse)
async def update_bank_name(bank_id: int, data: BankNameCreate, db: Session = Depends(get_db)):
    try:
        bank = BankNameService(db).update(bank_id, data.short_name, data.full_name)
    except ReconError as e:
        raise to_http_exception(e)
    db.commit()
    db.refresh(bank)
    return bank


@router.delete("/{bank_id}")
async def delete_bank_name(bank_id: int, db: Session = Depends(get_db)):
    try:
        BankNameService(db).delete(bank_id)
    except ReconError as e:
        raise to_http_exception(e)
    db.commit()
    return {"message": "Bank name deleted"}
