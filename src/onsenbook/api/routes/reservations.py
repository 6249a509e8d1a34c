"""Room reservation endpoints for guests.

Create (PENDING, price locked), list, read, confirm (debits the ledger) and
cancel (credits it back when the reservation was confirmed). The requester
only ever sees their own reservations.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Header, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from onsenbook.api.identity import Requester, get_requester
from onsenbook.api.responses import (
    domain_error_response,
    internal_error_response,
    json_response,
)
from onsenbook.domain.errors import DomainError
from onsenbook.observability.correlation import get_correlation_id
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context


class ContactFields(BaseModel):
    """Guest contact block shared by room and ticket reservations.

    Presence is checked by the domain so a missing field is a 400
    validation_error like any other input problem.
    """

    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    nationality: str | None = None
    special_requests: list[str] = Field(default_factory=list)

    def to_contact(self):
        from onsenbook.domain.reservations import Contact

        return Contact(
            first_name=self.first_name or "",
            last_name=self.last_name or "",
            phone_number=self.phone_number or "",
            email=self.email,
            nationality=self.nationality,
            special_requests=tuple(self.special_requests),
        )


class CreateRoomReservationRequest(ContactFields):
    room_type_id: int | None = None
    checkin: date | None = None
    checkout: date | None = None
    adults: int = 1
    children: int = 0
    room_count: int = 1


router = APIRouter(prefix="/reservations", tags=["reservations"])

logger = get_logger(__name__)


def confirm_for(kind, reservation_id: str, *, user_id: int | None) -> JSONResponse:
    """Run confirm for either reservation kind and render the outcome."""
    from onsenbook.domain.reservations import confirm_reservation

    try:
        result = confirm_reservation(kind, reservation_id, user_id=user_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("confirm reservation")
    return json_response(result)


def cancel_for(kind, reservation_id: str, *, reason, user_id: int | None) -> JSONResponse:
    """Run cancel for either reservation kind and render the outcome."""
    from onsenbook.domain.reservations import cancel_reservation

    try:
        result = cancel_reservation(kind, reservation_id, reason=reason, user_id=user_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("cancel reservation")
    return json_response(result)


def get_for(kind, reservation_id: str, *, user_id: int | None) -> JSONResponse:
    from onsenbook.domain.reservations import get_reservation

    try:
        result = get_reservation(kind, reservation_id, user_id=user_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("get reservation")
    return json_response(result)


def list_for(kind, user_id: int, *, include_expired: bool) -> JSONResponse:
    from onsenbook.domain.reservations import list_user_reservations

    try:
        items = list_user_reservations(kind, user_id, include_expired=include_expired)
    except Exception:
        return internal_error_response("list reservations")
    return json_response({"items": items})


@router.post("", status_code=201)
def create_reservation(
    body: CreateRoomReservationRequest,
    requester: Requester = Depends(get_requester),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
) -> JSONResponse:
    """Create a PENDING room reservation.

    Returns 201 with the reservation, or 200 with the original one when the
    Idempotency-Key was already used.
    """
    from onsenbook.domain.reservations import create_room_reservation

    try:
        result = create_room_reservation(
            user_id=requester.user_id,
            room_type_id=body.room_type_id,
            checkin=body.checkin,
            checkout=body.checkout,
            adults=body.adults,
            children=body.children,
            room_count=body.room_count,
            contact=body.to_contact(),
            idempotency_key=idempotency_key,
        )
    except DomainError as exc:
        logger.info(
            "room reservation rejected",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(), error=exc.code
                )
            },
        )
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("create reservation")

    return json_response(result, status_code=201 if result["created"] else 200)


@router.get("")
def list_reservations(
    include_expired: bool = Query(False),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    """The requester's room reservations, newest first."""
    from onsenbook.domain.reservations import ReservationKind

    return list_for(ReservationKind.ROOM, requester.user_id, include_expired=include_expired)


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: str = Path(..., description="Reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    from onsenbook.domain.reservations import ReservationKind

    return get_for(ReservationKind.ROOM, reservation_id, user_id=requester.user_id)


@router.post("/{reservation_id}/confirm")
def confirm_reservation(
    reservation_id: str = Path(..., description="Reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    """PENDING -> CONFIRMED. 409 insufficient_inventory leaves it PENDING."""
    from onsenbook.domain.reservations import ReservationKind

    return confirm_for(ReservationKind.ROOM, reservation_id, user_id=requester.user_id)


@router.patch("/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: str = Path(..., description="Reservation UUID"),
    requester: Requester = Depends(get_requester),
) -> JSONResponse:
    """Cancel on the guest's request. Repeating it is a no-op."""
    from onsenbook.domain.reservations import CancelReason, ReservationKind

    return cancel_for(
        ReservationKind.ROOM,
        reservation_id,
        reason=CancelReason.USER_REQUESTED,
        user_id=requester.user_id,
    )
