"""
LeaveFlow Backend - Main Application Entry Point
Leave balance ledger and approval routing
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from leaveflow.api.router import api_router
from leaveflow.core.config import settings
from leaveflow.core.errors import (
    leave_core_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from leaveflow.core.exceptions import LeaveCoreError
from leaveflow.core.logging import setup_logging
from leaveflow.db.session import SessionLocal, create_tables
from leaveflow.services.policy_service import get_or_create_policy_settings, seed_default_leave_types
from leaveflow.utils.datetime_utils import now_utc

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


# Create FastAPI app
app = FastAPI(
    title="LeaveFlow Backend",
    description="Leave balance ledger and two-stage approval routing",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(LeaveCoreError, leave_core_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so the target database can be verified."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


@app.on_event("startup")
def bootstrap_policy() -> None:
    """
    Create tables, the default leave types and the current policy year if missing.
    """
    create_tables()
    db = SessionLocal()
    try:
        seed_default_leave_types(db)
        get_or_create_policy_settings(db, now_utc().year)
    finally:
        db.close()
