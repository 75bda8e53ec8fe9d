"""
Bank Name Service - short name to full bank name mapping
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from ledgerlink.core.exceptions import ConflictError, NotFoundError, ValidationError
from ledgerlink.models import BankName


class BankNameService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[BankName]:
        return self.db.query(BankName).order_by(BankName.short_name).all()

    def lookup(self, short_name: str) -> Optional[BankName]:
        return self.db.query(BankName).filter(BankName.short_name == short_name).first()

    def _check_unique(self, short_name: str, exclude_id: int = None):
        query = self.db.query(BankName).filter(BankName.short_name == short_name)
        if exclude_id is not None:
            query = query.filter(BankName.id != exclude_id)
        if query.first():
            raise ConflictError(f'Short name "{short_name}" already exists')

    def create(self, short_name: str, full_name: str) -> BankName:
        if not short_name or not full_name:
            raise ValidationError("short_name and full_name are required")
        self._check_unique(short_name)
        bank = BankName(short_name=short_name, full_name=full_name)
        self.db.add(bank)
        self.db.flush()
        return bank

    def update(self, bank_id: int, short_name: str, full_name: str) -> BankName:
        bank = self.db.query(BankName).filter(BankName.id == bank_id).first()
        if not bank:
            raise NotFoundError("Bank name", bank_id)
        self._check_unique(short_name, exclude_id=bank_id)
        bank.short_name = short_name
        bank.full_name = full_name
        self.db.flush()
        return bank

    def delete(self, bank_id: int) -> None:
        bank = self.db.query(BankName).filter(BankName.id == bank_id).first()
        if not bank:
            raise NotFoundError("Bank name", bank_id)
        self.db.delete(bank)
        self.db.flush()
