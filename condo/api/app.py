"""FastAPI application."""

import logging

from fastapi import FastAPI

from condo import __version__
from condo.api.debt import router as debt_router
from condo.api.transactions import router as transactions_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Condo Ledger",
    description="Condominium fee, allocation and debt reconciliation",
    version=__version__,
)

app.include_router(debt_router)
app.include_router(transactions_router)


# Register health check endpoint
@app.get("/health")
def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}
