"""
Exception handlers that map domain exceptions to HTTP responses.
"""
import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from squadron.core.exceptions import (
    DomainException,
    NotFoundError,
    AlreadyExistsError,
    StateConflictError,
    ValidationError,
    AuthorizationError,
    OperationError,
    ServiceUnavailableError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching family wins
STATUS_BY_FAMILY = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (OperationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_code_for(exc: DomainException) -> int:
    for family, status_code in STATUS_BY_FAMILY:
        if isinstance(exc, family):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Log request validation errors without the submitted values, which may carry secrets."""
    summary = [{"loc": err.get("loc"), "msg": err.get("msg")} for err in exc.errors()]
    logger.error(f"Validation error on {request.method} {request.url.path}: {summary}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Map a domain exception to its HTTP status and a JSON body."""
    status_code = status_code_for(exc)

    if status_code >= 500 and status_code != status.HTTP_503_SERVICE_UNAVAILABLE:
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"details": exc.details},
        )
    elif status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        logger.warning(f"Upstream unavailable on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": exc.__class__.__name__,
            **exc.details,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
