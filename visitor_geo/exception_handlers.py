from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from visitor_geo.errors import StorageError
from visitor_geo.logger import logger
from visitor_geo.visitor_log import VISITOR_ID_HEADER

# Field name -> (code, message) for validation errors on a known field.
_FIELD_ERRORS: dict[str, tuple[str, str]] = {
    "ip": ("invalid_ip", "The supplied IP address is not a valid IPv4 or IPv6 address."),
    "visitor_key": ("invalid_visitor_key", "A non-empty visitor key is required."),
}


def _request_context(request: Request) -> str:
    """Log suffix identifying the request and, when the site sent one, the visitor."""
    visitor = request.headers.get(VISITOR_ID_HEADER)
    return f"path={request.url.path} method={request.method} visitor={visitor}"


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message})


def _field_of(error: dict[str, Any]) -> str | None:
    loc = error.get("loc") or ()
    return str(loc[-1]) if loc else None


def _validation_errors(exc: ValidationError | RequestValidationError) -> list[dict[str, Any]]:
    if isinstance(exc, ValidationError):
        return exc.errors(include_url=False)
    return list(exc.errors())


def _build_validation_error_payload(errors: list[dict[str, Any]]) -> tuple[str, str]:
    """Pick the public error code for a validation failure.

    Only a machine-readable code and a stable message are exposed; Pydantic's
    error details stay in the logs.
    """
    for error in errors:
        known = _FIELD_ERRORS.get(_field_of(error) or "")
        if known is not None:
            return known
    return "invalid_request", "Invalid request parameters"


async def pydantic_validation_exception_handler(
    request: Request, exc: ValidationError | RequestValidationError
) -> JSONResponse:
    """Turn validation failures into a 400 with a stable code.

    Covers both query models built in dependencies (pydantic ValidationError)
    and request bodies validated by FastAPI (RequestValidationError).
    """
    errors = _validation_errors(exc)
    fields = [_field_of(error) for error in errors]
    logger.info(f"Rejected request fields={fields} {_request_context(request)}")
    code, message = _build_validation_error_payload(errors)
    return _error_response(status.HTTP_400_BAD_REQUEST, code, message)


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Map visitor store outages to 503 so admin callers can retry later."""
    logger.warning(f"Visitor store unavailable error={exc} {_request_context(request)}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "storage_unavailable",
        "The visitor store is currently unavailable.",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    logger.exception(f"Unhandled exception {exc!r} {_request_context(request)}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred while processing the request.",
    )
