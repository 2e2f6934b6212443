import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import SessionLocal, get_db
from app.core.config import settings
from app.core.logging import CorrelationIdMiddleware, configure_logging
from app.routers import admin as admin_router
from app.routers import enrichment as enrichment_router
from app.routers import properties as properties_router
from app.services.enrichment import AddressEnricher
from app.core.errors import (
    HomeHistoryException,
    home_history_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the address enricher (HTTP client + process-local cache) for the process lifetime."""
    app.state.enricher = AddressEnricher(session_factory=SessionLocal)
    logger.info("Address enricher started")
    try:
        yield
    finally:
        await app.state.enricher.aclose()
        logger.info("Address enricher stopped")


app = FastAPI(
    title="Home History API",
    description=(
        "**Home History** — find an address, attach personal memories to it and "
        "browse nearby properties.\n\n"
        "Addresses are enriched from the US Census geocoder and OpenStreetMap "
        "Nominatim behind a two-tier cache.\n\n"
        "All error responses follow the `{success, code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)
app.add_middleware(CorrelationIdMiddleware)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(HomeHistoryException, home_history_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(enrichment_router.router)
app.include_router(admin_router.router)
app.include_router(properties_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
