"""
Application Configuration
"""
from dataclasses import dataclass
from pydantic_settings import BaseSettings
from typing import List
import warnings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "LedgerLink Reconciliation API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./ledgerlink.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Ledger system (external accounting backend)
    LEDGER_HOST: str = "localhost"
    LEDGER_PORT: int = 9000
    LEDGER_COMPANY: str = ""
    LEDGER_CHEQUE_COMPANY: str = "ODBC CHq Mgmt"
    LEDGER_CHEQUE_IN_HAND: str = "Cheque in Hand"
    LEDGER_CHECK_TIMEOUT_SECONDS: float = 3.0
    LEDGER_PUSH_TIMEOUT_SECONDS: float = 30.0

    # Reconciliation behaviour
    DISPLAY_COMPANY_NAME: str = "FOR DB"
    WALLET_MATCH_TOLERANCE_DAYS: int = 1
    ENFORCE_PAYMENT_VERSIONS: bool = False  # Opt-in optimistic concurrency on bill payments
    ENFORCE_CHEQUE_ALLOCATION: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def database_url(self) -> str:
        """Get properly formatted database URL"""
        url = self.DATABASE_URL
        if url.startswith("file:"):
            path = url[5:]
            return f"sqlite:///{path}"
        return url

    @property
    def ledger_base_url(self) -> str:
        return f"http://{self.LEDGER_HOST}:{self.LEDGER_PORT}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"

    def validate_settings(self):
        """Validate settings and warn about risky combinations"""
        if self.is_production and self.DEBUG:
            raise ValueError(
                "CRITICAL: DEBUG mode is enabled in production! "
                "Set DEBUG=False for production environment."
            )

        if self.LEDGER_CHECK_TIMEOUT_SECONDS <= 0:
            raise ValueError("LEDGER_CHECK_TIMEOUT_SECONDS must be positive")

        if self.LEDGER_CHECK_TIMEOUT_SECONDS > 10:
            warnings.warn(
                "WARNING: LEDGER_CHECK_TIMEOUT_SECONDS above 10s will stall "
                "payment recording while the ledger is offline.",
                UserWarning
            )

        if self.WALLET_MATCH_TOLERANCE_DAYS < 0:
            raise ValueError("WALLET_MATCH_TOLERANCE_DAYS cannot be negative")

        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


@dataclass(frozen=True)
class ReconConfig:
    """Configuration value handed to each reconciliation service"""
    company_name: str = "FOR DB"
    cheque_company: str = "ODBC CHq Mgmt"
    cheque_in_hand_ledger: str = "Cheque in Hand"
    wallet_match_tolerance_days: int = 1
    enforce_payment_versions: bool = False
    enforce_cheque_allocation: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconConfig":
        return cls(
            company_name=settings.DISPLAY_COMPANY_NAME,
            cheque_company=settings.LEDGER_CHEQUE_COMPANY,
            cheque_in_hand_ledger=settings.LEDGER_CHEQUE_IN_HAND,
            wallet_match_tolerance_days=settings.WALLET_MATCH_TOLERANCE_DAYS,
            enforce_payment_versions=settings.ENFORCE_PAYMENT_VERSIONS,
            enforce_cheque_allocation=settings.ENFORCE_CHEQUE_ALLOCATION,
        )


settings = Settings()

# Validate on import (but don't crash in development)
try:
    settings.validate_settings()
except ValueError as e:
    if settings.is_production:
        raise
    else:
        warnings.warn(str(e), UserWarning)
