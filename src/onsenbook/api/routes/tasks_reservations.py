"""Worker routes triggered by the external scheduler.

- POST /tasks/reservations/expire: one expiry sweep
- POST /tasks/inventory/extend-horizon: roll ledgers forward

Both are safe to call repeatedly or concurrently.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from onsenbook.api.responses import json_response
from onsenbook.api.task_auth import require_task_auth
from onsenbook.domain.errors import DomainError
from onsenbook.observability.correlation import get_correlation_id
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_auth)])

logger = get_logger(__name__)


async def _optional_json(request: Request) -> dict[str, Any] | None:
    """Body as a dict; {} when empty, None when it is not a JSON object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = await request.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


@router.post("/reservations/expire")
async def handle_expire(request: Request) -> JSONResponse:
    """Expire PENDING reservations older than the threshold.

    Optional payload:
    - threshold_minutes: overrides RESERVATION_EXPIRY_MINUTES
    """
    from onsenbook.domain.expire_reservations import sweep_expired
    from onsenbook.infra.settings import get_settings

    correlation_id = get_correlation_id()
    payload = await _optional_json(request)
    if payload is None:
        return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})

    threshold = payload.get("threshold_minutes", get_settings().reservation_expiry_minutes)
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": "threshold_minutes must be an integer"},
        )

    try:
        result = sweep_expired(threshold_minutes=threshold)
    except DomainError as exc:
        return JSONResponse(
            status_code=exc.http_status, content={"ok": False, "error": exc.code}
        )
    except Exception:
        logger.exception(
            "expire task failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=500, content={"ok": False, "error": "internal error"})

    logger.info(
        "expire task completed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                threshold_minutes=threshold,
                expired=result["expired"],
            )
        },
    )
    return json_response({"ok": True, **result})


@router.post("/inventory/extend-horizon")
def handle_extend_horizon() -> JSONResponse:
    """Top up every active product's ledger to today + INVENTORY_HORIZON_DAYS."""
    from onsenbook.domain.products import extend_horizon

    correlation_id = get_correlation_id()
    try:
        result = extend_horizon()
    except Exception:
        logger.exception(
            "extend-horizon task failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=500, content={"ok": False, "error": "internal error"})

    return json_response({"ok": True, **result})
