"""
Columnar Service - party-wise daily rollup of bill payments
"""
from typing import Dict, List
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date

from ledgerlink.models import BillPayment

COLUMNS = {
    "bill_amount": BillPayment.bill_amount,
    "cash": BillPayment.cash_amount,
    "wallet": BillPayment.wallet_amount,
    "cheque": BillPayment.cheque_total,
    "discount": BillPayment.discount,
    "e_wallet": BillPayment.e_wallet_amount,
    "bank_deposit": BillPayment.bank_deposit,
    "total_paid": BillPayment.total_paid,
    "balance": BillPayment.balance_due,
}


class ColumnarService:
    def __init__(self, db: Session):
        self.db = db

    def daily_rollup(self, day: date, search: str = "") -> Dict:
        """One row per party for bills dated `day`, plus column totals"""
        query = self.db.query(
            BillPayment.party_name,
            func.count(BillPayment.id),
            *[func.coalesce(func.sum(column), 0) for column in COLUMNS.values()]
        ).filter(BillPayment.bill_date == day)
        if search:
            query = query.filter(BillPayment.party_name.ilike(f"%{search}%"))
        rows = query.group_by(BillPayment.party_name).order_by(BillPayment.party_name).all()

        result: List[Dict] = []
        totals = {name: Decimal("0") for name in COLUMNS}
        for party_name, bill_count, *sums in rows:
            row = {"party_name": party_name, "bill_count": bill_count}
            for name, value in zip(COLUMNS, sums):
                value = Decimal(str(value or 0))
                row[name] = value
                totals[name] += value
            result.append(row)

        return {"day": day, "count": len(result), "rows": result, "totals": totals}

    def party_details(self, day: date, party_name: str) -> List[BillPayment]:
        return self.db.query(BillPayment).filter(
            BillPayment.bill_date == day,
            BillPayment.party_name == party_name
        ).order_by(BillPayment.voucher_number).all()
