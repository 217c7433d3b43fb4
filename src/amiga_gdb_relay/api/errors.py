"""Error handlers for API."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from amiga_gdb_relay.core.exceptions import (
    BreakpointNotFoundError,
    DisconnectedError,
    GdbError,
    GdbRelayError,
    InvalidBreakpointError,
    InvalidRegisterError,
    InvalidStateError,
    LegacyStubError,
    NotConnectedError,
    RequestInFlightError,
    StubUnresponsiveError,
    ThreadNotFoundError,
    TransportError,
    UnexpectedReplyError,
)

logger = logging.getLogger(__name__)

# Map exceptions to HTTP status codes
EXCEPTION_STATUS_MAP = {
    BreakpointNotFoundError: 404,
    ThreadNotFoundError: 404,
    InvalidBreakpointError: 400,
    InvalidRegisterError: 400,
    NotConnectedError: 409,
    InvalidStateError: 409,
    RequestInFlightError: 409,
    GdbError: 502,
    UnexpectedReplyError: 502,
    LegacyStubError: 502,
    TransportError: 502,
    DisconnectedError: 502,
    StubUnresponsiveError: 504,
}


def make_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Create a standard error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            },
            "meta": {
                "request_id": str(uuid.uuid4()),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        },
    )


async def gdb_relay_error_handler(
    request: Request,
    exc: GdbRelayError,
) -> JSONResponse:
    """Handle GdbRelayError exceptions."""
    status_code = EXCEPTION_STATUS_MAP.get(type(exc), 500)
    logger.warning(f"GdbRelayError: {exc.code} - {exc.message}")
    return make_error_response(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        status_code=status_code,
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request body and parameter validation errors."""
    errors = [
        {"loc": [str(part) for part in error["loc"]], "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request to {request.url.path}: {errors}")
    return make_error_response(
        code="INVALID_REQUEST",
        message=errors[0]["message"] if errors else "Invalid request",
        details={"errors": errors},
        status_code=400,
    )


async def generic_error_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(f"Unexpected error: {exc}")
    return make_error_response(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred",
        details={"error": str(exc)},
        status_code=500,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the app."""
    app.add_exception_handler(GdbRelayError, gdb_relay_error_handler)  # type: ignore
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore
    app.add_exception_handler(Exception, generic_error_handler)
