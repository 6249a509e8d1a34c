"""Day-ticket reservation endpoints for guests."""

from __future__ import annotations

import datetime

from fastapi import APIRouter, Depends, Header, Path, Query
from fastapi.responses import JSONResponse

from onsenbook.api.identity import Requester, get_requester
from onsenbook.api.responses import (
    domain_error_response,
    internal_error_response,
    json_response,
)
from onsenbook.api.routes.reservations import (
    ContactFields,
    cancel_for,
    confirm_for,
    get_for,
    list_for,
)
from onsenbook.domain.errors import DomainError


class CreateTicketReservationRequest(ContactFields):
    ticket_type_id: int | None = None
    date: datetime.date | None = None
    adults: int = 0
    children: int = 0


router = APIRouter(prefix="/ticket-reservations", tags=["ticket-reservations"])


@router.post("", status_code=201)
def create_ticket_reservation(
    body: CreateTicketReservationRequest,
    requester: Requester = Depends(get_requester),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
) -> JSONResponse:
    """Create a PENDING ticket reservation (201, or 200 on idempotent replay)."""
    from onsenbook.domain.reservations import create_ticket_reservation as create

    try:
        result = create(
            user_id=requester.user_id,
            ticket_type_id=body.ticket_type_id,
            day=body.date,
            adults=body.adults,
            children=body.children,
            contact=body.to_contact(),
            idempotency_key=idempotency_key,
        )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("create ticket reservation")

    return json_response(result, status_code=201 if result["created"] else 200)


@router.get("")
def list_ticket_reservations(
    include_expired: bool = Query(False),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    from onsenbook.domain.reservations import ReservationKind

    return list_for(ReservationKind.TICKET, requester.user_id, include_expired=include_expired)


@router.get("/{reservation_id}")
def get_ticket_reservation(
    reservation_id: str = Path(..., description="Ticket reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    from onsenbook.domain.reservations import ReservationKind

    return get_for(ReservationKind.TICKET, reservation_id, user_id=requester.user_id)


@router.post("/{reservation_id}/confirm")
def confirm_ticket_reservation(
    reservation_id: str = Path(..., description="Ticket reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    from onsenbook.domain.reservations import ReservationKind

    return confirm_for(ReservationKind.TICKET, reservation_id, user_id=requester.user_id)


@router.patch("/{reservation_id}/cancel")
def cancel_ticket_reservation(
    reservation_id: str = Path(..., description="Ticket reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    from onsenbook.domain.reservations import CancelReason, ReservationKind

    return cancel_for(
        ReservationKind.TICKET,
        reservation_id,
        reason=CancelReason.USER_REQUESTED,
        user_id=requester.user_id,
    )
