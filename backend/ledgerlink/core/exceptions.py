"""
Reconciliation Error Types
"""
from typing import Optional


class ReconError(Exception):
    """Base exception for reconciliation errors"""

    code: str = "RECON_ERROR"
    status_code: int = 500


class ValidationError(ReconError, ValueError):
    """Missing or invalid input that the caller can correct"""

    code: str = "VALIDATION_ERROR"
    status_code: int = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFoundError(ReconError):
    """Referenced bill, cheque, voucher or transaction does not exist"""

    code: str = "NOT_FOUND"
    status_code: int = 404

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class AlreadyMatchedError(ReconError):
    """Wallet transaction is already linked to a bill"""

    code: str = "ALREADY_MATCHED"
    status_code: int = 409

    def __init__(self, transaction_id: str, voucher_number: Optional[str] = None):
        self.transaction_id = transaction_id
        self.voucher_number = voucher_number
        detail = f" to bill {voucher_number}" if voucher_number else ""
        super().__init__(f"Wallet transaction {transaction_id} is already linked{detail}")


class ConflictError(ReconError):
    """Uniqueness or version conflict"""

    code: str = "CONFLICT"
    status_code: int = 409


class GatewayUnavailableError(ReconError):
    """Ledger system unreachable, timed out or returned an unusable reply"""

    code: str = "GATEWAY_UNAVAILABLE"
    status_code: int = 503
