"""Availability search and price quotes.

Read-only. A room type is offered only when every night of the stay has a
ledger row with enough rooms, the same rule confirm applies, so search never
shows something that cannot be booked at that moment. Prices here are
projections; the reservation total is fixed only at creation.
"""

from __future__ import annotations

from datetime import date

from onsenbook.domain.errors import ProductNotFound, ValidationError
from onsenbook.domain.pricing import (
    nightly_average,
    nights,
    price_breakdown,
    ticket_total_price,
    total_price,
)
from onsenbook.domain.products import room_rate, ticket_rates
from onsenbook.infra.db import txn
from onsenbook.infra.repositories import products_repository as repo

# Region values that mean "no filter".
ALL_REGIONS = frozenset({"all", "전체"})


def normalize_region(region: str | None) -> str | None:
    if region is None:
        return None
    region = region.strip()
    if not region or region.lower() in ALL_REGIONS:
        return None
    return region


def _validate_party(adults: int, children: int) -> None:
    if adults < 1:
        raise ValidationError("at least one adult is required")
    if children < 0:
        raise ValidationError("children must be >= 0")


def search_rooms(
    *,
    checkin: date,
    checkout: date,
    adults: int,
    children: int = 0,
    room_count: int = 1,
    region: str | None = None,
    accommodation_type: str | None = None,
) -> list[dict]:
    """Room types bookable for the whole stay, each priced for it.

    Returns:
        List of dicts with room type/lodge identity, max occupancy,
        min_available_rooms, total_price (exact) and nightly_average (floored).

    Raises:
        ValidationError: checkin >= checkout, or a bad party / room count.
    """
    if checkin >= checkout:
        raise ValidationError("checkin must be before checkout")
    _validate_party(adults, children)
    if room_count < 1:
        raise ValidationError("room_count must be >= 1")

    stay = nights(checkin, checkout)
    with txn() as cur:
        candidates = repo.search_room_candidates(
            cur,
            checkin=checkin,
            checkout=checkout,
            night_count=len(stay),
            adults=adults,
            children=children,
            room_count=room_count,
            region=normalize_region(region),
            accommodation_type=accommodation_type or None,
        )
        seasons = repo.fetch_seasonal_pricing(
            cur, [c["room_type_id"] for c in candidates]
        )

    results = []
    for candidate in candidates:
        rate = room_rate(candidate, seasons.get(candidate["room_type_id"], []))
        total = total_price(rate, stay, room_count)
        results.append(
            {
                **candidate,
                "room_count": room_count,
                "nights": len(stay),
                "total_price": total,
                "nightly_average": nightly_average(total, len(stay), room_count),
            }
        )
    return results


def search_tickets(
    *,
    day: date,
    adults: int,
    children: int = 0,
    region: str | None = None,
) -> list[dict]:
    """Ticket types with both pools sufficient on day, each priced for the party."""
    if adults < 0 or children < 0:
        raise ValidationError("adults and children must be >= 0")
    if adults + children < 1:
        raise ValidationError("at least one ticket is required")

    with txn() as cur:
        candidates = repo.search_ticket_candidates(
            cur,
            day=day,
            adults=adults,
            children=children,
            region=normalize_region(region),
        )

    results = []
    for candidate in candidates:
        adult_rate, child_rate = ticket_rates(candidate)
        results.append(
            {
                **candidate,
                "date": day,
                "total_price": ticket_total_price(
                    adult_rate, child_rate, day, adults=adults, children=children
                ),
            }
        )
    return results


def quote_room_stay(
    *,
    room_type_id: int,
    checkin: date,
    checkout: date,
    room_count: int = 1,
) -> dict:
    """Price a stay without checking or touching availability.

    Raises:
        ValidationError: checkin >= checkout or room_count < 1.
        ProductNotFound: Unknown or deleted room type.
    """
    if checkin >= checkout:
        raise ValidationError("checkin must be before checkout")
    if room_count < 1:
        raise ValidationError("room_count must be >= 1")

    with txn() as cur:
        room_type = repo.get_room_type(cur, room_type_id)
        if room_type is None:
            raise ProductNotFound("room type not found", meta={"room_type_id": room_type_id})
        seasons = repo.fetch_seasonal_pricing(cur, [room_type_id])

    stay = nights(checkin, checkout)
    rate = room_rate(room_type, seasons.get(room_type_id, []))
    total = total_price(rate, stay, room_count)
    return {
        "room_type_id": room_type_id,
        "checkin": checkin,
        "checkout": checkout,
        "nights": len(stay),
        "room_count": room_count,
        "total_price": total,
        "nightly_average": nightly_average(total, len(stay), room_count),
        "breakdown": price_breakdown(rate, stay),
    }
