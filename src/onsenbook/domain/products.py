"""Product administration - room/ticket types, pricing and their ledgers.

Only the operations that touch the inventory ledger or the pricing inputs
live here. Capacity edits reconcile future ledger rows while keeping what is
already reserved; pricing edits never touch stored reservation totals.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Sequence

from onsenbook.domain import inventory
from onsenbook.domain.errors import ProductNotFound, ValidationError
from onsenbook.domain.pricing import Rate, SeasonalPrice, validate_seasons
from onsenbook.infra.db import txn
from onsenbook.infra.repositories import inventory_repository
from onsenbook.infra.repositories import products_repository as repo
from onsenbook.infra.settings import get_settings
from onsenbook.infra.time import today as current_date
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)

_ROOM_PRICE_FIELDS = ("base_price", "weekend_price")
_ROOM_COUNT_FIELDS = ("max_adults", "max_children", "total_rooms")
_TICKET_PRICE_FIELDS = (
    "adult_price",
    "child_price",
    "adult_weekend_price",
    "child_weekend_price",
)
_TICKET_COUNT_FIELDS = ("total_adult_tickets", "total_child_tickets")

# The only columns an admin may clear.
_NULLABLE_FIELDS = frozenset(
    {"description", "weekend_price", "adult_weekend_price", "child_weekend_price"}
)


# ---------------------------------------------------------------------------
# Rates from stored rows
# ---------------------------------------------------------------------------


def seasons_from_rows(rows: Sequence[dict]) -> tuple[SeasonalPrice, ...]:
    return tuple(
        SeasonalPrice(
            date_from=row["date_from"],
            date_to=row["date_to"],
            base_price=row["base_price"],
            weekend_price=row["weekend_price"],
        )
        for row in rows
    )


def room_rate(room_type: dict, season_rows: Sequence[dict]) -> Rate:
    """Pricing input of a room type, seasons in stored order."""
    return Rate(
        base_price=room_type["base_price"],
        weekend_price=room_type["weekend_price"],
        seasons=seasons_from_rows(season_rows),
    )


def ticket_rates(ticket_type: dict) -> tuple[Rate, Rate]:
    """(adult, child) pricing inputs of a ticket type."""
    return (
        Rate(
            base_price=ticket_type["adult_price"],
            weekend_price=ticket_type["adult_weekend_price"],
        ),
        Rate(
            base_price=ticket_type["child_price"],
            weekend_price=ticket_type["child_weekend_price"],
        ),
    )


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def _check_non_negative(values: dict[str, Any], names: Sequence[str]) -> None:
    for name in names:
        value = values.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer", meta={"field": name})


def _check_not_null(values: dict[str, Any]) -> None:
    cleared = sorted(k for k, v in values.items() if v is None and k not in _NULLABLE_FIELDS)
    if cleared:
        raise ValidationError(
            f"{cleared[0]} cannot be null", meta={"fields": cleared}
        )


def _check_room_fields(values: dict[str, Any]) -> None:
    _check_not_null(values)
    _check_non_negative(values, _ROOM_PRICE_FIELDS + _ROOM_COUNT_FIELDS)
    if "max_adults" in values and values["max_adults"] < 1:
        raise ValidationError("max_adults must be at least 1")
    if "name" in values and not (values["name"] or "").strip():
        raise ValidationError("name is required")


def _check_ticket_fields(values: dict[str, Any]) -> None:
    _check_not_null(values)
    _check_non_negative(values, _TICKET_PRICE_FIELDS + _TICKET_COUNT_FIELDS)
    if "name" in values and not (values["name"] or "").strip():
        raise ValidationError("name is required")


# ---------------------------------------------------------------------------
# Room types
# ---------------------------------------------------------------------------


def create_room_type(
    *,
    lodge_id: int,
    name: str,
    base_price: int,
    max_adults: int,
    max_children: int,
    total_rooms: int,
    weekend_price: int | None = None,
    description: str | None = None,
    seasons: Sequence[SeasonalPrice] = (),
    start: date | None = None,
) -> dict:
    """Create a room type, its seasonal pricing and its ledger horizon.

    Ledger rows are created for [start, start + INVENTORY_HORIZON_DAYS) with
    available = total = total_rooms, all in the same transaction.

    Raises:
        ValidationError: Bad field values or overlapping seasons.
        ProductNotFound: Unknown lodge.
        InventoryAlreadyExists: Ledger rows already present (never expected
            for a new id).
    """
    fields = {
        "lodge_id": lodge_id,
        "name": name,
        "description": description,
        "base_price": base_price,
        "weekend_price": weekend_price,
        "max_adults": max_adults,
        "max_children": max_children,
        "total_rooms": total_rooms,
    }
    _check_room_fields(fields)
    ordered = validate_seasons(seasons)
    start = start or current_date()
    horizon = get_settings().inventory_horizon_days

    with txn() as cur:
        if not repo.lodge_exists(cur, lodge_id):
            raise ProductNotFound("lodge not found", meta={"lodge_id": lodge_id})
        room_type_id = repo.insert_room_type(cur, fields=fields)
        repo.replace_seasonal_pricing(
            cur, room_type_id=room_type_id, seasons=[_season_row(s) for s in ordered]
        )
        rows = inventory.ensure_room_inventory(
            cur,
            room_type_id=room_type_id,
            start=start,
            end=start + timedelta(days=horizon),
            total_rooms=total_rooms,
        )

    logger.info(
        "room type created",
        extra={
            "extra_fields": safe_log_context(
                room_type_id=room_type_id,
                lodge_id=lodge_id,
                total_rooms=total_rooms,
                inventory_rows=rows,
            )
        },
    )
    return {"id": room_type_id, **fields, "inventory_rows": rows}


def update_room_type(room_type_id: int, changes: dict[str, Any]) -> dict:
    """Apply admin edits to a room type.

    A total_rooms change reconciles ledger rows from today onward, keeping
    reserved counts.

    Raises:
        ProductNotFound: Unknown or deleted room type.
        ValidationError: Bad field values.
    """
    changes = {k: v for k, v in changes.items() if k in repo.ROOM_TYPE_UPDATABLE}
    _check_room_fields(changes)

    with txn() as cur:
        current = repo.get_room_type(cur, room_type_id, lock=True)
        if current is None:
            raise ProductNotFound("room type not found", meta={"room_type_id": room_type_id})
        repo.update_room_type(cur, room_type_id, changes)

        new_total = changes.get("total_rooms")
        if new_total is not None and new_total != current["total_rooms"]:
            inventory.reconcile_room_capacity(
                cur,
                room_type_id=room_type_id,
                new_total=new_total,
                from_date=current_date(),
            )
        updated = repo.get_room_type(cur, room_type_id)

    return updated


def replace_seasonal_pricing(room_type_id: int, seasons: Sequence[SeasonalPrice]) -> list[dict]:
    """Replace every seasonal override of a room type with validated ones.

    Raises:
        ValidationError: Inverted or overlapping ranges, negative prices.
        ProductNotFound: Unknown or deleted room type.
    """
    ordered = validate_seasons(seasons)
    rows = [_season_row(s) for s in ordered]
    with txn() as cur:
        if repo.get_room_type(cur, room_type_id, lock=True) is None:
            raise ProductNotFound("room type not found", meta={"room_type_id": room_type_id})
        repo.replace_seasonal_pricing(cur, room_type_id=room_type_id, seasons=rows)

    logger.info(
        "seasonal pricing replaced",
        extra={"extra_fields": safe_log_context(room_type_id=room_type_id, seasons=len(rows))},
    )
    return rows


def delete_room_type(room_type_id: int) -> None:
    """Soft delete: hidden from search and create, existing reservations kept."""
    with txn() as cur:
        if not repo.soft_delete_room_type(cur, room_type_id):
            raise ProductNotFound("room type not found", meta={"room_type_id": room_type_id})
    logger.info(
        "room type deleted",
        extra={"extra_fields": safe_log_context(room_type_id=room_type_id)},
    )


def _season_row(season: SeasonalPrice) -> dict:
    return {
        "date_from": season.date_from,
        "date_to": season.date_to,
        "base_price": season.base_price,
        "weekend_price": season.weekend_price,
    }


# ---------------------------------------------------------------------------
# Ticket types
# ---------------------------------------------------------------------------


def create_ticket_type(
    *,
    lodge_id: int,
    name: str,
    adult_price: int,
    child_price: int,
    total_adult_tickets: int,
    total_child_tickets: int,
    adult_weekend_price: int | None = None,
    child_weekend_price: int | None = None,
    description: str | None = None,
    start: date | None = None,
) -> dict:
    """Create a ticket type and its two-pool ledger horizon."""
    fields = {
        "lodge_id": lodge_id,
        "name": name,
        "description": description,
        "adult_price": adult_price,
        "child_price": child_price,
        "adult_weekend_price": adult_weekend_price,
        "child_weekend_price": child_weekend_price,
        "total_adult_tickets": total_adult_tickets,
        "total_child_tickets": total_child_tickets,
    }
    _check_ticket_fields(fields)
    start = start or current_date()
    horizon = get_settings().inventory_horizon_days

    with txn() as cur:
        if not repo.lodge_exists(cur, lodge_id):
            raise ProductNotFound("lodge not found", meta={"lodge_id": lodge_id})
        ticket_type_id = repo.insert_ticket_type(cur, fields=fields)
        rows = inventory.ensure_ticket_inventory(
            cur,
            ticket_type_id=ticket_type_id,
            start=start,
            end=start + timedelta(days=horizon),
            total_adult_tickets=total_adult_tickets,
            total_child_tickets=total_child_tickets,
        )

    logger.info(
        "ticket type created",
        extra={
            "extra_fields": safe_log_context(
                ticket_type_id=ticket_type_id, lodge_id=lodge_id, inventory_rows=rows
            )
        },
    )
    return {"id": ticket_type_id, **fields, "inventory_rows": rows}


def update_ticket_type(ticket_type_id: int, changes: dict[str, Any]) -> dict:
    """Apply admin edits to a ticket type; pool totals reconcile independently."""
    changes = {k: v for k, v in changes.items() if k in repo.TICKET_TYPE_UPDATABLE}
    _check_ticket_fields(changes)

    with txn() as cur:
        current = repo.get_ticket_type(cur, ticket_type_id, lock=True)
        if current is None:
            raise ProductNotFound(
                "ticket type not found", meta={"ticket_type_id": ticket_type_id}
            )
        repo.update_ticket_type(cur, ticket_type_id, changes)

        new_adult = changes.get("total_adult_tickets", current["total_adult_tickets"])
        new_child = changes.get("total_child_tickets", current["total_child_tickets"])
        if (new_adult, new_child) != (
            current["total_adult_tickets"],
            current["total_child_tickets"],
        ):
            inventory.reconcile_ticket_capacity(
                cur,
                ticket_type_id=ticket_type_id,
                new_adult_total=new_adult,
                new_child_total=new_child,
                from_date=current_date(),
            )
        updated = repo.get_ticket_type(cur, ticket_type_id)

    return updated


def delete_ticket_type(ticket_type_id: int) -> None:
    with txn() as cur:
        if not repo.soft_delete_ticket_type(cur, ticket_type_id):
            raise ProductNotFound(
                "ticket type not found", meta={"ticket_type_id": ticket_type_id}
            )
    logger.info(
        "ticket type deleted",
        extra={"extra_fields": safe_log_context(ticket_type_id=ticket_type_id)},
    )


# ---------------------------------------------------------------------------
# Horizon upkeep
# ---------------------------------------------------------------------------


def extend_horizon(*, today: date | None = None) -> dict:
    """Roll every active product's ledger forward to the configured horizon."""
    today = today or current_date()
    horizon = get_settings().inventory_horizon_days
    with txn() as cur:
        result = inventory.extend_inventory_horizon(cur, today=today, horizon_days=horizon)
    logger.info(
        "inventory horizon extended",
        extra={"extra_fields": safe_log_context(horizon_days=horizon, **result)},
    )
    return result


# ---------------------------------------------------------------------------
# Ledger view
# ---------------------------------------------------------------------------

LEDGER_DEFAULT_DAYS = 30
LEDGER_MAX_DAYS = 366


def _ledger_range(date_from: date | None, date_to: date | None) -> tuple[date, date]:
    date_from = date_from or current_date()
    date_to = date_to or date_from + timedelta(days=LEDGER_DEFAULT_DAYS - 1)
    if date_to < date_from:
        raise ValidationError(
            "date_to must not be before date_from",
            meta={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
    if (date_to - date_from).days >= LEDGER_MAX_DAYS:
        raise ValidationError(f"date range cannot exceed {LEDGER_MAX_DAYS} days")
    return date_from, date_to


def room_inventory_ledger(
    *,
    room_type_id: int | None = None,
    lodge_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    """Read-only room ledger rows, inclusive of both dates.

    The range defaults to LEDGER_DEFAULT_DAYS days starting today.

    Raises:
        ValidationError: Inverted range or one longer than LEDGER_MAX_DAYS.
    """
    date_from, date_to = _ledger_range(date_from, date_to)
    with txn() as cur:
        items = inventory_repository.list_room_inventory(
            cur,
            date_from=date_from,
            date_to=date_to,
            room_type_id=room_type_id,
            lodge_id=lodge_id,
        )
    return {"date_from": date_from, "date_to": date_to, "items": items}


def ticket_inventory_ledger(
    *,
    ticket_type_id: int | None = None,
    lodge_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    """Read-only ticket ledger rows; same range rules as room_inventory_ledger."""
    date_from, date_to = _ledger_range(date_from, date_to)
    with txn() as cur:
        items = inventory_repository.list_ticket_inventory(
            cur,
            date_from=date_from,
            date_to=date_to,
            ticket_type_id=ticket_type_id,
            lodge_id=lodge_id,
        )
    return {"date_from": date_from, "date_to": date_to, "items": items}
