"""
Error Taxonomy and Global Error Handling

This module defines the exception types shared by every component of the
RAG server and the FastAPI handlers that turn them into HTTP responses.

Design Goals
------------
- Caller errors are distinguishable from provider failures
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("rag.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class ValidationFailed(ValueError):
    """Caller error: bad input, detected before any side effect."""


class ProviderUnavailable(RuntimeError):
    """A dependency has no credentials or never finished initialising."""


class ProviderCallFailed(RuntimeError):
    """A configured upstream (LLM, embedding API, vector index) failed a call."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class GenerationFailed(ProviderCallFailed):
    """An LLM provider call failed; carries the provider and model used."""

    def __init__(self, provider: str, model: str, message: str) -> None:
        super().__init__(
            f"Generation failed on {provider}:{model}: {message}",
            provider=provider,
        )
        self.model = model


class ConfigurationFatal(RuntimeError):
    """Configuration that makes the service unable to start or run."""


class SessionNotFound(KeyError):
    """No session exists under the requested id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    payload: Dict[str, Any] = {"error": error, "detail": detail}
    return JSONResponse(status_code=status_code, content=payload)


async def validation_failed_handler(
    request: Request,
    exc: ValidationFailed,
) -> JSONResponse:
    """Map caller errors to 400 with the validation message."""
    return _error(status.HTTP_400_BAD_REQUEST, "validation_failed", str(exc))


async def session_not_found_handler(
    request: Request,
    exc: SessionNotFound,
) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "session_not_found", str(exc))


async def provider_unavailable_handler(
    request: Request,
    exc: ProviderUnavailable,
) -> JSONResponse:
    logger.warning(
        "Provider unavailable during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "service_unavailable",
        str(exc),
    )


async def provider_call_failed_handler(
    request: Request,
    exc: ProviderCallFailed,
) -> JSONResponse:
    """
    Map upstream failures to 502.

    The provider name is reported; the upstream error text is not.
    """
    logger.error(
        "Upstream call failed during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    detail = "Upstream provider call failed"
    if exc.provider:
        detail = f"Upstream provider call failed ({exc.provider})"
    return _error(status.HTTP_502_BAD_GATEWAY, "upstream_failure", detail)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_server_error",
        "Internal server error",
    )


def register_exception_handlers(app) -> None:
    """Install every handler above on a FastAPI app, most specific first."""
    app.add_exception_handler(ValidationFailed, validation_failed_handler)
    app.add_exception_handler(SessionNotFound, session_not_found_handler)
    app.add_exception_handler(ProviderUnavailable, provider_unavailable_handler)
    app.add_exception_handler(ProviderCallFailed, provider_call_failed_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
