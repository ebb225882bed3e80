"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from repairshop.core.config import settings
from repairshop.core.structured_logging import build_log_context
from repairshop.db.session import engine
from repairshop.services.folio_service import FolioGenerationError
from repairshop.services.order_lifecycle import InvalidTransitionError
from repairshop.services.order_service import (
    InvalidAssigneeError,
    OrderClosedError,
    OrderNotFoundError,
)

logger = logging.getLogger(__name__)

if settings.ENV == "dev":
    logging.basicConfig(level=logging.INFO)


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Repair Shop API",
    description="Service order lifecycle, folios and staff notifications",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-Id"],
)


# ============================================================================
# Domain error mapping
# ============================================================================


@app.exception_handler(OrderNotFoundError)
async def order_not_found_handler(request: Request, exc: OrderNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "current_status": exc.current.value,
            "requested_status": exc.new.value,
        },
    )


@app.exception_handler(OrderClosedError)
async def order_closed_handler(request: Request, exc: OrderClosedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidAssigneeError)
async def invalid_assignee_handler(request: Request, exc: InvalidAssigneeError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(FolioGenerationError)
async def folio_generation_handler(request: Request, exc: FolioGenerationError):
    logger.error(
        "Folio allocation exhausted after %s attempts",
        exc.attempts,
        extra=build_log_context(job="create_order"),
    )
    return JSONResponse(
        status_code=503,
        content={"detail": "Could not allocate an order number, please retry"},
        headers={"Retry-After": "1"},
    )


# ============================================================================
# Routers
# ============================================================================

from repairshop.routers import internal, notifications, orders

app.include_router(orders.router, prefix="/orders", tags=["orders"])

# Notifications (user's own)
app.include_router(notifications.router, prefix="/me", tags=["notifications"])

# Internal scheduled endpoints (cron jobs)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
