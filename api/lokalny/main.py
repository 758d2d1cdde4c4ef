from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import logging
import traceback
from typing import Any, Dict, Optional
from lokalny.core.config import settings
from lokalny.core.database import get_session, init_db
from lokalny.core.exceptions import (
    LokalnyException,
    ValidationError,
    NotFoundError,
    ConflictError,
)

# Import models to register them with SQLModel
from lokalny.models import models  # noqa: F401

# Import API router
from lokalny.api.v1 import api_router

logger = logging.getLogger(__name__)

# Checked in order; subclasses such as InvalidParameterError resolve through their base
STATUS_BY_EXCEPTION = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)

app = FastAPI(title="Lokalny API", version="1.0.0")


def _error_response(
    status_code: int,
    error_type: str,
    detail: Any,
    extra: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Error body shared by every handler: ``detail`` and ``type``, plus optional debug fields."""
    content = {"detail": detail, "type": error_type}
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def _status_for(exc: LokalnyException) -> int:
    for exception_class, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exception_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters: 422 with the offending fields."""
    errors = exc.errors()
    fields = ", ".join(".".join(str(part) for part in error.get("loc", ())) for error in errors)
    logger.warning(f"Rejected {request.method} {request.url.path}: invalid {fields or 'request'}")
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "RequestValidationError", errors)


@app.exception_handler(LokalnyException)
async def lokalny_exception_handler(request: Request, exc: LokalnyException):
    """Map engine exceptions to HTTP status codes."""
    status_code = _status_for(exc)
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path} ({status_code}): {exc}")
    return _error_response(status_code, type(exc).__name__, str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Unexpected failures: 500, with the traceback only when running in development."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    if settings.is_development:
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            type(exc).__name__,
            str(exc),
            {"traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))},
        )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An internal server error occurred. Please try again later.",
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    init_db()


@app.get("/")
async def root():
    return {
        "message": "Lokalny API",
        "status": "running",
        "environment": settings.environment,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health")
async def health(session: Session = Depends(get_session)):
    """Liveness plus a database round trip; 503 when the database is unreachable."""
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unreachable"},
        )
    return {"status": "healthy", "database": "ok"}


# Include API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
