"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit une gestion centralisée des erreurs avec des enveloppes standardisées, des codes
d'erreur cohérents et la projection des erreurs du domaine (`ZwdsError`) sur des statuts HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from zwds.core.http_constants import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_INSUFFICIENT_STORAGE,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNPROCESSABLE_ENTITY,
)
from zwds.domain.errors import (
    AlreadyInFlight,
    ConfigurationMissing,
    DuplicateRecordId,
    NetworkOrServiceFailure,
    StorageWriteFailure,
    UnknownPalace,
    ZwdsError,
)

log = structlog.get_logger(__name__, component="api_errors")


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize an API error with standardized envelope."""
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.details = details


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_ERROR_CODES = {
    400: ErrorCodes.BAD_REQUEST,
    404: ErrorCodes.NOT_FOUND,
    405: "METHOD_NOT_ALLOWED",
    409: ErrorCodes.CONFLICT,
    422: ErrorCodes.VALIDATION_ERROR,
    500: ErrorCodes.INTERNAL_ERROR,
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

# Statut HTTP par erreur du domaine (la première classe correspondante gagne)
DOMAIN_STATUS: tuple[tuple[type[ZwdsError], int], ...] = (
    (StorageWriteFailure, HTTP_INSUFFICIENT_STORAGE),
    (NetworkOrServiceFailure, HTTP_BAD_GATEWAY),
    (ConfigurationMissing, HTTP_SERVICE_UNAVAILABLE),
    (AlreadyInFlight, HTTP_CONFLICT),
    (DuplicateRecordId, HTTP_CONFLICT),
    (UnknownPalace, HTTP_UNPROCESSABLE_ENTITY),
)


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Extract trace ID from request headers or request state."""
    trace_id = request.headers.get("X-Trace-ID") or request.headers.get("X-Request-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def status_for(exc: ZwdsError) -> int:
    """Statut HTTP d'une erreur du domaine."""
    for error_type, status in DOMAIN_STATUS:
        if isinstance(exc, error_type):
            return status
    return HTTP_BAD_REQUEST


def handle_domain_error(request: Request, exc: ZwdsError) -> JSONResponse:
    """Handle domain errors with standard envelope."""
    status = status_for(exc)
    details = None
    if isinstance(exc, StorageWriteFailure):
        details = {"key": exc.key}
    elif isinstance(exc, NetworkOrServiceFailure) and exc.status_code is not None:
        details = {"upstream_status": exc.status_code}
    log.warning("domain_error", code=exc.code, status_code=status, error=str(exc))
    return create_error_response(
        status_code=status,
        code=exc.code,
        message=str(exc),
        trace_id=extract_trace_id(request),
        details=details,
    )


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    log.info("api_error", code=exc.code, status_code=exc.status_code)
    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=extract_trace_id(request),
        details=exc.details,
    )


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return create_error_response(
        status_code=exc.status_code,
        code=code,
        message=str(exc.detail),
        trace_id=extract_trace_id(request),
    )


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with standard envelope."""
    return create_error_response(
        status_code=HTTP_UNPROCESSABLE_ENTITY,
        code=ErrorCodes.VALIDATION_ERROR,
        message="Invalid request payload",
        trace_id=extract_trace_id(request),
        details={"errors": [str(e.get("msg")) for e in exc.errors()]},
    )


def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Handle invalid values raised by the domain (dates, immutable patches)."""
    return create_error_response(
        status_code=HTTP_UNPROCESSABLE_ENTITY,
        code=ErrorCodes.VALIDATION_ERROR,
        message=str(exc),
        trace_id=extract_trace_id(request),
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    log.error(
        "unexpected_error",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        exc_info=True,
    )
    return create_error_response(
        status_code=HTTP_INTERNAL_SERVER_ERROR,
        code=ErrorCodes.INTERNAL_ERROR,
        message="An unexpected error occurred",
        trace_id=extract_trace_id(request),
    )


def not_found(message: str) -> APIError:
    """Create a 404 Not Found error."""
    return APIError(404, ErrorCodes.NOT_FOUND, message)


def install_error_handlers(app: FastAPI) -> None:
    """Enregistre les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(ZwdsError, handle_domain_error)
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(ValueError, handle_value_error)
    app.add_exception_handler(Exception, handle_generic_exception)
