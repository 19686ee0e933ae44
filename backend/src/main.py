"""DocLifecycle Backend - Main FastAPI Application

Document compliance and lifecycle engine for loan files.

This module creates and configures the main FastAPI application, including:
- Retention, lifecycle action, validity and audit routers
- Middleware (correlation ID, CORS)
- Exception handlers mapping lifecycle errors to HTTP responses
- Health and observability endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import init_db
from domain.lifecycle.errors import (
    ConfigError,
    EvaluationError,
    NotFoundError,
    PersistenceError,
    PreconditionError,
    PreconditionReason,
)

# Observability
from observability.logging_config import configure_logging
from observability.middleware import CorrelationIDMiddleware
from observability.router import router as observability_router

# Feature routers
from audit.router import router as audit_router
from retention.router import router as retention_router

# Binds shared tasks to the configured broker
from workers.celery_app import celery_app  # noqa: F401

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    logger.info(f"DocLifecycle API starting ({settings.ENVIRONMENT})")
    init_db()
    yield
    logger.info("DocLifecycle API stopped")


_docs_enabled = settings.ENVIRONMENT != "production"

app = FastAPI(
    title="DocLifecycle API",
    description="Document retention, validity tracking and audit trail export",
    version=API_VERSION,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    openapi_url="/openapi.json" if _docs_enabled else None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(CorrelationIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


@app.exception_handler(PreconditionError)
async def precondition_exception_handler(request: Request, exc: PreconditionError) -> JSONResponse:
    """Rejected lifecycle actions: 409 with the typed reason (404 for unknown documents)."""
    status_code = (
        status.HTTP_404_NOT_FOUND
        if exc.reason == PreconditionReason.DOCUMENT_NOT_FOUND
        else status.HTTP_409_CONFLICT
    )
    return _error(status_code, exc.reason.value, exc.message)


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "not_found", str(exc))


@app.exception_handler(ConfigError)
async def config_exception_handler(request: Request, exc: ConfigError) -> JSONResponse:
    """Malformed or contradictory configuration."""
    logger.warning(f"Configuration error on {request.method} {request.url.path}: {exc}")
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "config_error", str(exc))


@app.exception_handler(EvaluationError)
async def evaluation_exception_handler(request: Request, exc: EvaluationError) -> JSONResponse:
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "evaluation_error", exc.message, document_id=exc.document_id,
    )


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Store write failed after retries; the document keeps its last committed state."""
    logger.error(f"Persistence error on {request.method} {request.url.path}: {exc}")
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE, "persistence_error", "The change could not be stored. Please retry.",
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Field-level details for malformed requests (bad category, archive after retention, ...)."""
    logger.warning(f"Validation error on {request.method} {request.url.path}")
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", "Request validation failed",
        details=jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raised ValueError itself, which JSON cannot encode
    return [
        {key: (str(value) if key == "ctx" else value) for key, value in error.items()}
        for error in exc.errors()
    ]


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unexpected database failure: logged in full, reported generically."""
    logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error", "A database error occurred. Please try again later.",
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(observability_router)
app.include_router(retention_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, Any]:
    return {
        "name": "DocLifecycle API",
        "version": API_VERSION,
        "docs": "/docs" if _docs_enabled else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
