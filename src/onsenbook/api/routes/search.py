"""Availability search and price calculator endpoints (no identity needed)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from onsenbook.api.responses import (
    domain_error_response,
    internal_error_response,
    json_response,
)
from onsenbook.domain.errors import DomainError


class PriceCalculationRequest(BaseModel):
    room_type_id: int
    checkin: date
    checkout: date
    room_count: int = 1


router = APIRouter(tags=["search"])


@router.get("/search/rooms")
def search_rooms(
    checkin: date = Query(...),
    checkout: date = Query(...),
    adults: int = Query(1),
    children: int = Query(0),
    room_count: int = Query(1),
    region: str | None = Query(None),
    accommodation_type: str | None = Query(None),
) -> JSONResponse:
    """Room types bookable for every night of the stay, with prices."""
    from onsenbook.domain.search import search_rooms as run_search

    try:
        items = run_search(
            checkin=checkin,
            checkout=checkout,
            adults=adults,
            children=children,
            room_count=room_count,
            region=region,
            accommodation_type=accommodation_type,
        )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("room search")
    return json_response({"items": items})


@router.get("/search/tickets")
def search_tickets(
    day: date = Query(..., alias="date"),
    adults: int = Query(1),
    children: int = Query(0),
    region: str | None = Query(None),
) -> JSONResponse:
    """Ticket types with enough adult and child tickets on the day."""
    from onsenbook.domain.search import search_tickets as run_search

    try:
        items = run_search(day=day, adults=adults, children=children, region=region)
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("ticket search")
    return json_response({"items": items})


@router.post("/price/calculate")
def calculate_price(body: PriceCalculationRequest) -> JSONResponse:
    """Quote a stay: total, floored nightly average and per-night breakdown."""
    from onsenbook.domain.search import quote_room_stay

    try:
        quote = quote_room_stay(
            room_type_id=body.room_type_id,
            checkin=body.checkin,
            checkout=body.checkout,
            room_count=body.room_count,
        )
    except DomainError as exc:
        return domain_error_response(exc)
    except Exception:
        return internal_error_response("price calculation")
    return json_response(quote)
