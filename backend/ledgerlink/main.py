"""
Main FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from ledgerlink.core.config import settings
from ledgerlink.core.database import init_db
from ledgerlink.api.v1 import bill_payments, bills, cheques, wallet, outstanding, columnar, bank_names, events

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting up...")
    init_db()
    logger.info(f"Database initialized; ledger at {settings.ledger_base_url}")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred", "error": str(exc)}
    )


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Include routers
app.include_router(bill_payments.router, prefix="/api/v1")
app.include_router(bills.router, prefix="/api/v1")
app.include_router(cheques.router, prefix="/api/v1")
app.include_router(wallet.router, prefix="/api/v1")
app.include_router(outstanding.router, prefix="/api/v1")
app.include_router(columnar.router, prefix="/api/v1")
app.include_router(bank_names.router, prefix="/api/v1")
app.include_router(events.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
