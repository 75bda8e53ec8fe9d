"""
Shared FastAPI dependencies: ledger gateway, event bus, reconciliation config
"""
from functools import lru_cache
from fastapi import HTTPException

from ledgerlink.core.config import settings, ReconConfig
from ledgerlink.core.events import EventBus, InMemoryEventBus
from ledgerlink.core.exceptions import ReconError
from ledgerlink.services.ledger_gateway import LedgerGateway, HttpLedgerGateway


@lru_cache()
def get_gateway() -> LedgerGateway:
    return HttpLedgerGateway(
        base_url=settings.ledger_base_url,
        company_name=settings.LEDGER_COMPANY,
        check_timeout=settings.LEDGER_CHECK_TIMEOUT_SECONDS,
        push_timeout=settings.LEDGER_PUSH_TIMEOUT_SECONDS
    )


@lru_cache()
def get_event_bus() -> EventBus:
    return InMemoryEventBus()


@lru_cache()
def get_recon_config() -> ReconConfig:
    return ReconConfig.from_settings(settings)


def to_http_exception(exc: ReconError) -> HTTPException:
    """Map a reconciliation error onto its HTTP status"""
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": str(exc)}
    )
