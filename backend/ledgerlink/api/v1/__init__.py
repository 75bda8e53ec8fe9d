# API v1 Package
from ledgerlink.api.v1 import bill_payments, bills, cheques, wallet, outstanding, columnar, bank_names, events

__all__ = [
    'bill_payments',
    'bills',
    'cheques',
    'wallet',
    'outstanding',
    'columnar',
    'bank_names',
    'events',
]
