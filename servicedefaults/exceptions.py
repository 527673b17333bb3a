# =============================================================================
# servicedefaults/exceptions.py - Errors and Problem Details
# =============================================================================
# Error types raised by the service defaults, plus the exception handlers
# that turn request-processing errors into RFC 9457 problem documents
# (application/problem+json).
# =============================================================================

import logging
from http import HTTPStatus
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"

# RFC 9110 section links, keyed by status code
_PROBLEM_TYPES = {
    400: "https://tools.ietf.org/html/rfc9110#section-15.5.1",
    404: "https://tools.ietf.org/html/rfc9110#section-15.5.5",
    405: "https://tools.ietf.org/html/rfc9110#section-15.5.6",
    422: "https://tools.ietf.org/html/rfc9110#section-15.5.21",
    500: "https://tools.ietf.org/html/rfc9110#section-15.6.1",
    503: "https://tools.ietf.org/html/rfc9110#section-15.6.4",
}


class ServiceDefaultsError(Exception):
    """
    Base exception for the shared service defaults.

    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "SERVICE_DEFAULTS_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


class ServiceResolutionError(ServiceDefaultsError):
    """Raised when a logical service name has no endpoint for the requested scheme."""

    def __init__(self, service_name: str, schemes: list[str]):
        super().__init__(
            message=f"No endpoint found for service '{service_name}' (schemes: {', '.join(schemes)})",
            code="SERVICE_NOT_RESOLVED",
            status_code=502,
            suggestion=f"Set services__{service_name}__<scheme>__0 to the service URL",
            details={"service": service_name, "schemes": schemes},
        )


class CircuitOpenError(httpx.TransportError):
    """Raised instead of sending a request while the circuit breaker is open."""


# =============================================================================
# Problem Details
# =============================================================================

def problem_details(
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    instance: str | None = None,
    **extensions: Any,
) -> dict[str, Any]:
    """Build a problem details document."""
    problem: dict[str, Any] = {
        "type": _PROBLEM_TYPES.get(status_code, "about:blank"),
        "title": title or _status_phrase(status_code),
        "status": status_code,
    }
    if detail:
        problem["detail"] = detail
    if instance:
        problem["instance"] = instance
    problem.update(extensions)
    return problem


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def _problem_response(status_code: int, content: dict[str, Any], headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        media_type=PROBLEM_JSON,
        headers=headers,
    )


async def service_defaults_exception_handler(
    request: Request,
    exc: ServiceDefaultsError
) -> JSONResponse:
    """Convert ServiceDefaultsError to a problem document carrying its code."""
    body = exc.to_dict()
    detail = body.pop("detail")
    return _problem_response(
        exc.status_code,
        problem_details(exc.status_code, detail=detail, instance=request.url.path, **body),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """Convert HTTP errors (404, 405, ...) to problem documents."""
    detail = exc.detail if isinstance(exc.detail, str) else None
    if detail == _status_phrase(exc.status_code):
        detail = None
    return _problem_response(
        exc.status_code,
        problem_details(exc.status_code, detail=detail, instance=request.url.path),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Convert request validation errors to a 400 problem document."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        errors.setdefault(location, []).append(error.get("msg", "Invalid value"))
    return _problem_response(
        400,
        problem_details(
            400,
            title="One or more validation errors occurred.",
            instance=request.url.path,
            errors=errors,
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    logger.exception(f"Unhandled exception processing {request.method} {request.url.path}: {exc}")
    return _problem_response(
        500,
        problem_details(
            500,
            title="An error occurred while processing your request.",
            instance=request.url.path,
        ),
    )


def add_problem_details(app: FastAPI) -> FastAPI:
    """Register the problem-details exception handlers on an application."""
    app.add_exception_handler(ServiceDefaultsError, service_defaults_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app
