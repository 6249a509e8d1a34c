"""Admin endpoints for room types, ticket types and seasonal pricing.

Creation builds the inventory ledger horizon; capacity edits reconcile
future ledger rows; deletes are soft. The inventory ledger view is read-only.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from onsenbook.api.identity import Requester, require_admin
from onsenbook.api.responses import (
    domain_error_response,
    internal_error_response,
    json_response,
)
from onsenbook.domain.errors import DomainError
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context


class SeasonBody(BaseModel):
    date_from: date
    date_to: date
    base_price: int
    weekend_price: int

    def to_season(self):
        from onsenbook.domain.pricing import SeasonalPrice

        return SeasonalPrice(
            date_from=self.date_from,
            date_to=self.date_to,
            base_price=self.base_price,
            weekend_price=self.weekend_price,
        )


class CreateRoomTypeRequest(BaseModel):
    lodge_id: int
    name: str
    description: str | None = None
    base_price: int
    weekend_price: int | None = None
    max_adults: int
    max_children: int = 0
    total_rooms: int
    seasonal_pricing: list[SeasonBody] = Field(default_factory=list)
    start_date: date | None = None


class UpdateRoomTypeRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    base_price: int | None = None
    weekend_price: int | None = None
    max_adults: int | None = None
    max_children: int | None = None
    total_rooms: int | None = None


class ReplaceSeasonalPricingRequest(BaseModel):
    seasons: list[SeasonBody]


class CreateTicketTypeRequest(BaseModel):
    lodge_id: int
    name: str
    description: str | None = None
    adult_price: int
    child_price: int
    adult_weekend_price: int | None = None
    child_weekend_price: int | None = None
    total_adult_tickets: int
    total_child_tickets: int
    start_date: date | None = None


class UpdateTicketTypeRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    adult_price: int | None = None
    child_price: int | None = None
    adult_weekend_price: int | None = None
    child_weekend_price: int | None = None
    total_adult_tickets: int | None = None
    total_child_tickets: int | None = None


router = APIRouter(prefix="/admin", tags=["admin"])

logger = get_logger(__name__)


def _audit(action: str, admin: Requester, **fields) -> None:
    logger.info(
        f"admin {action}",
        extra={"extra_fields": safe_log_context(admin_user_id=admin.user_id, **fields)},
    )


# ---------------------------------------------------------------------------
# Room types
# ---------------------------------------------------------------------------


@router.post("/room-types", status_code=201)
def create_room_type(
    body: CreateRoomTypeRequest,
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import create_room_type as create

    try:
        result = create(
            lodge_id=body.lodge_id,
            name=body.name,
            description=body.description,
            base_price=body.base_price,
            weekend_price=body.weekend_price,
            max_adults=body.max_adults,
            max_children=body.max_children,
            total_rooms=body.total_rooms,
            seasons=[s.to_season() for s in body.seasonal_pricing],
            start=body.start_date,
        )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("create room type")

    _audit("created room type", admin, room_type_id=result["id"])
    return json_response(result, status_code=201)


@router.patch("/room-types/{room_type_id}")
def update_room_type(
    body: UpdateRoomTypeRequest,
    room_type_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    """Partial update; only fields present in the body change."""
    from onsenbook.domain.products import update_room_type as update

    changes = body.model_dump(exclude_unset=True)
    try:
        result = update(room_type_id, changes)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("update room type")

    _audit("updated room type", admin, room_type_id=room_type_id, fields=sorted(changes))
    return json_response(result)


@router.put("/room-types/{room_type_id}/seasonal-pricing")
def replace_seasonal_pricing(
    body: ReplaceSeasonalPricingRequest,
    room_type_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import replace_seasonal_pricing as replace

    try:
        seasons = replace(room_type_id, [s.to_season() for s in body.seasons])
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("replace seasonal pricing")

    _audit("replaced seasonal pricing", admin, room_type_id=room_type_id)
    return json_response({"room_type_id": room_type_id, "seasons": seasons})


@router.delete("/room-types/{room_type_id}")
def delete_room_type(
    room_type_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import delete_room_type as delete

    try:
        delete(room_type_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("delete room type")

    _audit("deleted room type", admin, room_type_id=room_type_id)
    return json_response({"id": room_type_id, "deleted": True})


# ---------------------------------------------------------------------------
# Ticket types
# ---------------------------------------------------------------------------


@router.post("/ticket-types", status_code=201)
def create_ticket_type(
    body: CreateTicketTypeRequest,
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import create_ticket_type as create

    try:
        result = create(
            lodge_id=body.lodge_id,
            name=body.name,
            description=body.description,
            adult_price=body.adult_price,
            child_price=body.child_price,
            adult_weekend_price=body.adult_weekend_price,
            child_weekend_price=body.child_weekend_price,
            total_adult_tickets=body.total_adult_tickets,
            total_child_tickets=body.total_child_tickets,
            start=body.start_date,
        )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("create ticket type")

    _audit("created ticket type", admin, ticket_type_id=result["id"])
    return json_response(result, status_code=201)


@router.patch("/ticket-types/{ticket_type_id}")
def update_ticket_type(
    body: UpdateTicketTypeRequest,
    ticket_type_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import update_ticket_type as update

    changes = body.model_dump(exclude_unset=True)
    try:
        result = update(ticket_type_id, changes)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("update ticket type")

    _audit("updated ticket type", admin, ticket_type_id=ticket_type_id, fields=sorted(changes))
    return json_response(result)


@router.delete("/ticket-types/{ticket_type_id}")
def delete_ticket_type(
    ticket_type_id: int = Path(...),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    from onsenbook.domain.products import delete_ticket_type as delete

    try:
        delete(ticket_type_id)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("delete ticket type")

    _audit("deleted ticket type", admin, ticket_type_id=ticket_type_id)
    return json_response({"id": ticket_type_id, "deleted": True})


@router.get("/inventory/{kind}")
def get_inventory_ledger(
    kind: Literal["room", "ticket"] = Path(...),
    product_id: int | None = Query(None, description="Room type or ticket type id"),
    lodge_id: int | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    admin: Requester = Depends(require_admin),
) -> JSONResponse:
    """Read-only ledger rows; capacity only changes through products and reservations."""
    from onsenbook.domain.products import room_inventory_ledger, ticket_inventory_ledger

    try:
        if kind == "room":
            result = room_inventory_ledger(
                room_type_id=product_id,
                lodge_id=lodge_id,
                date_from=date_from,
                date_to=date_to,
            )
        else:
            result = ticket_inventory_ledger(
                ticket_type_id=product_id,
                lodge_id=lodge_id,
                date_from=date_from,
                date_to=date_to,
            )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("list inventory")
    return json_response(result)
