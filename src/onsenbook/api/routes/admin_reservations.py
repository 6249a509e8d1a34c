"""Admin endpoints: browse and force-transition reservations, delete users."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from onsenbook.api.identity import Requester, require_admin
from onsenbook.api.responses import (
    domain_error_response,
    internal_error_response,
    json_response,
)
from onsenbook.api.routes.reservations import cancel_for, confirm_for
from onsenbook.domain.errors import DomainError
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context


class AdminStatusRequest(BaseModel):
    """Target status. Cancellation defaults to reason admin_forced."""

    status: Literal["confirmed", "cancelled"]
    cancel_reason: Literal["admin_forced", "user_requested"] = "admin_forced"


router = APIRouter(prefix="/admin", tags=["admin"])

logger = get_logger(__name__)


@router.get("/reservations/{kind}")
def list_reservations(
    kind: Literal["room", "ticket"] = Path(...),
    page: int = Query(1),
    limit: int = Query(10),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    """Every user's reservations, newest first, with page/limit/total."""
    from onsenbook.domain.reservations import ReservationKind, list_all_reservations

    try:
        result = list_all_reservations(ReservationKind(kind), page=page, limit=limit)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("list all reservations")
    return json_response(result)


@router.get("/reservations/{kind}/{reservation_id}")
def get_reservation(
    kind: Literal["room", "ticket"] = Path(...),
    reservation_id: str = Path(..., description="Reservation UUID"),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.reservations import ReservationKind, get_reservation_with_user

    try:
        result = get_reservation_with_user(ReservationKind(kind), reservation_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("get reservation")
    return json_response(result)


@router.patch("/reservations/{kind}/{reservation_id}")
def update_reservation_status(
    body: AdminStatusRequest,
    kind: Literal["room", "ticket"] = Path(...),
    reservation_id: str = Path(..., description="Reservation UUID"),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    """Confirm or cancel any user's reservation through the state machine.

    Same ledger effects as the guest actions; there is no way to set a
    status directly.
    """
    from onsenbook.domain.reservations import CancelReason, ReservationKind

    reservation_kind = ReservationKind(kind)
    logger.info(
        "admin reservation status change",
        extra={
            "extra_fields": safe_log_context(
                admin_user_id=admin.user_id,
                kind=kind,
                reservation_id=reservation_id,
                status=body.status,
            )
        },
    )
    if body.status == "confirmed":
        return confirm_for(reservation_kind, reservation_id, user_id=None)
    return cancel_for(
        reservation_kind,
        reservation_id,
        reason=CancelReason(body.cancel_reason),
        user_id=None,
    )


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    """Delete a user, crediting back capacity held by confirmed reservations."""
    from onsenbook.domain.users import delete_user as delete

    try:
        result = delete(user_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("delete user")

    logger.info(
        "admin deleted user",
        extra={"extra_fields": safe_log_context(admin_user_id=admin.user_id, user_id=user_id)},
    )
    return json_response(result)
