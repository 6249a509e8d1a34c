"""JSON responses for route handlers: results, domain errors, internal errors."""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from onsenbook.domain.errors import DomainError
from onsenbook.observability.correlation import get_correlation_id
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


def json_response(content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def domain_error_response(exc: DomainError) -> JSONResponse:
    """{"error": code, "message": ...} with the error's HTTP status."""
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(exc.to_dict()))


def internal_error_response(action: str) -> JSONResponse:
    """Log the active exception and answer a generic 500 without details.

    Must be called from inside an except block.
    """
    logger.exception(
        f"{action} failed",
        extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "internal error"},
    )
