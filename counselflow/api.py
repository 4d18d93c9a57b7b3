"""
CounselFlow Contracts API
=========================

Application factory: settings, logging, persistence lifecycle, middleware,
error handlers, health check and the contracts router.

Run with:
    uvicorn counselflow.api:app --reload
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api_contracts import router as contracts_router
from .config import Settings, get_settings
from .contracts import ContractService
from .db.models import utc_now
from .db.session import Database
from .errors import ContractServiceError
from .middleware import (
    RateLimitMiddleware,
    RequestContextMiddleware,
    RequestIdFilter,
    SecurityHeadersMiddleware,
)
from .schemas import error_envelope

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Root logging with the request id on every line"""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


# =============================================================================
# Error handlers
# =============================================================================

def _field_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """One entry per violated field, without echoing the input"""
    details = []
    for err in exc.errors():
        # Malformed JSON is located by character offset, not by field
        if err.get("type") == "json_invalid":
            field = "body"
        else:
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            field = ".".join(loc) or "body"
        details.append({
            "field": field,
            "message": err.get("msg", "Invalid value"),
            "type": err.get("type", "value_error"),
        })
    return details


async def service_error_handler(request: Request, exc: ContractServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.message, exc.details),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=error_envelope("Validation failed", _field_errors(exc)),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content=error_envelope("Internal server error"))


# =============================================================================
# App factory
# =============================================================================

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to environment settings
        database: Defaults to one built from ``settings.database_url``;
            the app disposes it on shutdown either way
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    for warning in settings.validate_security_config():
        logger.warning(f"Security config: {warning}")

    database = database or Database.from_settings(settings)

    app = FastAPI(
        title="CounselFlow Contracts API",
        description="Contract listing, search, statistics and management",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.contract_service = ContractService(database, expiring_soon_days=settings.expiring_soon_days)

    # Middleware (last added runs first)
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, settings=settings)
        logger.info("Rate limiting middleware enabled")
    app.add_middleware(
        SecurityHeadersMiddleware,
        enforce_https=settings.enforce_https,
        hsts_max_age=settings.hsts_max_age,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(ContractServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.on_event("startup")
    async def on_startup():
        if settings.auto_create_schema:
            database.init_schema()
        logger.info(f"Contracts API {settings.service_version} started")

    @app.on_event("shutdown")
    async def on_shutdown():
        database.close()

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint"""
        db_ok = database.ping()
        return {
            "status": "healthy" if db_ok else "degraded",
            "version": settings.service_version or __version__,
            "database": "ok" if db_ok else "unreachable",
            "timestamp": utc_now().isoformat(),
        }

    app.include_router(contracts_router, prefix="/api/v1")
    return app


app = create_app()
