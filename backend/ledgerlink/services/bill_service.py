"""
Bill Service - bills registered by the billing workflow
"""
from typing import Optional
from sqlalchemy.orm import Session

from ledgerlink.core.exceptions import ConflictError, NotFoundError
from ledgerlink.models import Bill
from ledgerlink.schemas import BillCreate


class BillService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, bill_id: int, include_deleted: bool = False) -> Optional[Bill]:
        query = self.db.query(Bill).filter(Bill.id == bill_id)
        if not include_deleted:
            query = query.filter(Bill.is_deleted == False)
        return query.first()

    def get_bill(self, bill_id: int) -> Bill:
        bill = self.get_by_id(bill_id)
        if not bill:
            raise NotFoundError("Bill", bill_id)
        return bill

    def register_bill(self, bill_data: BillCreate) -> Bill:
        duplicate = self.db.query(Bill).filter(
            Bill.voucher_number == bill_data.voucher_number,
            Bill.party_name == bill_data.party_name,
            Bill.voucher_date == bill_data.voucher_date
        ).first()
        if duplicate:
            raise ConflictError(
                f"Bill {bill_data.voucher_number} already exists for {bill_data.party_name} on {bill_data.voucher_date}"
            )

        bill = Bill(
            voucher_number=bill_data.voucher_number,
            party_name=bill_data.party_name,
            amount=bill_data.amount,
            voucher_date=bill_data.voucher_date,
            is_deleted=False
        )
        self.db.add(bill)
        self.db.flush()
        return bill

    def soft_delete_bill(self, bill_id: int) -> Bill:
        """Bills are flagged, never removed"""
        bill = self.get_bill(bill_id)
        bill.is_deleted = True
        self.db.flush()
        return bill
