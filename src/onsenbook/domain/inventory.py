"""Inventory ledger - per-product, per-day capacity for rooms and tickets.

All functions take the cursor of an open transaction. Debits are applied
one date at a time in ascending order with a guarded UPDATE; the first date
lacking capacity raises InsufficientInventory, which rolls back the whole
transaction, so a multi-night debit is all-or-nothing. Credits are clamped to
the row total so 0 <= available <= total always holds.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from onsenbook.domain.errors import InsufficientInventory, InventoryAlreadyExists
from onsenbook.domain.pricing import iter_dates
from onsenbook.infra.repositories import inventory_repository as repo
from onsenbook.infra.repositories.products_repository import (
    get_room_type,
    get_ticket_type,
)
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


def ensure_room_inventory(
    cur: PgCursor,
    *,
    room_type_id: int,
    start: date,
    end: date,
    total_rooms: int,
    strict: bool = True,
) -> int:
    """Create one ledger row per date in [start, end).

    Args:
        strict: If True, any pre-existing row raises InventoryAlreadyExists
            (no silent overwrite). If False, existing rows are skipped.

    Returns:
        Number of rows created.
    """
    dates = list(iter_dates(start, end))
    created = repo.insert_room_inventory_rows(
        cur, room_type_id=room_type_id, dates=dates, total_rooms=total_rooms
    )
    if strict and len(created) != len(dates):
        existing = sorted(set(dates) - set(created))
        raise InventoryAlreadyExists(
            "inventory already exists for room type",
            meta={"room_type_id": room_type_id, "first_date": str(existing[0])},
        )
    return len(created)


def check_room_availability(
    cur: PgCursor,
    *,
    room_type_id: int,
    dates: Sequence[date],
    units: int,
    lock: bool = False,
) -> bool:
    """True iff every date has a ledger row with available_rooms >= units."""
    if not dates:
        return False
    rows = repo.fetch_room_inventory(
        cur, room_type_id=room_type_id, dates=dates, lock=lock
    )
    return all(d in rows and rows[d][1] >= units for d in dates)


def debit_room_inventory(
    cur: PgCursor,
    *,
    room_type_id: int,
    dates: Sequence[date],
    units: int,
) -> None:
    """Take units rooms off every date, or fail for all of them.

    Raises:
        InsufficientInventory: On the first date lacking capacity. The caller's
            transaction must roll back (txn() does so on exception).
    """
    for night in sorted(dates):
        if not repo.decrement_available_rooms(
            cur, room_type_id=room_type_id, night_date=night, units=units
        ):
            raise InsufficientInventory(
                "not enough rooms available",
                meta={"room_type_id": room_type_id, "date": str(night)},
            )


def credit_room_inventory(
    cur: PgCursor,
    *,
    room_type_id: int,
    dates: Sequence[date],
    units: int,
) -> int:
    """Give units rooms back on every date (clamped to total).

    Returns:
        Number of dates credited. Missing ledger rows are logged and skipped.
    """
    credited = 0
    for night in sorted(dates):
        if repo.increment_available_rooms(
            cur, room_type_id=room_type_id, night_date=night, units=units
        ):
            credited += 1
        else:
            logger.warning(
                "room inventory row missing on credit",
                extra={
                    "extra_fields": safe_log_context(
                        room_type_id=room_type_id, date=night, units=units
                    )
                },
            )
    return credited


def reconcile_room_capacity(
    cur: PgCursor,
    *,
    room_type_id: int,
    new_total: int,
    from_date: date,
) -> int:
    """Apply a new total_rooms to ledger rows from from_date onward.

    Reserved counts (total - available) are preserved; available never drops
    below zero.
    """
    updated = repo.reconcile_room_totals(
        cur, room_type_id=room_type_id, new_total=new_total, from_date=from_date
    )
    logger.info(
        "room capacity reconciled",
        extra={
            "extra_fields": safe_log_context(
                room_type_id=room_type_id, new_total=new_total, rows=updated
            )
        },
    )
    return updated


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------


def ensure_ticket_inventory(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    start: date,
    end: date,
    total_adult_tickets: int,
    total_child_tickets: int,
    strict: bool = True,
) -> int:
    """Create one ticket ledger row per date in [start, end)."""
    dates = list(iter_dates(start, end))
    created = repo.insert_ticket_inventory_rows(
        cur,
        ticket_type_id=ticket_type_id,
        dates=dates,
        total_adult_tickets=total_adult_tickets,
        total_child_tickets=total_child_tickets,
    )
    if strict and len(created) != len(dates):
        existing = sorted(set(dates) - set(created))
        raise InventoryAlreadyExists(
            "inventory already exists for ticket type",
            meta={"ticket_type_id": ticket_type_id, "first_date": str(existing[0])},
        )
    return len(created)


def check_ticket_availability(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
    lock: bool = False,
) -> bool:
    """True iff the day's row has enough tickets in both pools."""
    row = repo.fetch_ticket_inventory(
        cur, ticket_type_id=ticket_type_id, day=day, lock=lock
    )
    if row is None:
        return False
    return (
        row["available_adult_tickets"] >= adults
        and row["available_child_tickets"] >= children
    )


def debit_ticket_inventory(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
) -> None:
    """Take tickets off both pools for the day, or fail without change.

    Raises:
        InsufficientInventory: If either pool (or the row) is short.
    """
    if not repo.decrement_available_tickets(
        cur, ticket_type_id=ticket_type_id, day=day, adults=adults, children=children
    ):
        raise InsufficientInventory(
            "not enough tickets available for the selected date",
            meta={"ticket_type_id": ticket_type_id, "date": str(day)},
        )


def credit_ticket_inventory(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
) -> bool:
    """Give tickets back to both pools for the day (each clamped)."""
    credited = repo.increment_available_tickets(
        cur, ticket_type_id=ticket_type_id, day=day, adults=adults, children=children
    )
    if not credited:
        logger.warning(
            "ticket inventory row missing on credit",
            extra={
                "extra_fields": safe_log_context(ticket_type_id=ticket_type_id, date=day)
            },
        )
    return credited


def reconcile_ticket_capacity(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    new_adult_total: int,
    new_child_total: int,
    from_date: date,
) -> int:
    """Apply new pool totals to ticket ledger rows from from_date onward."""
    updated = repo.reconcile_ticket_totals(
        cur,
        ticket_type_id=ticket_type_id,
        new_adult_total=new_adult_total,
        new_child_total=new_child_total,
        from_date=from_date,
    )
    logger.info(
        "ticket capacity reconciled",
        extra={
            "extra_fields": safe_log_context(
                ticket_type_id=ticket_type_id,
                new_adult_total=new_adult_total,
                new_child_total=new_child_total,
                rows=updated,
            )
        },
    )
    return updated


# ---------------------------------------------------------------------------
# Horizon upkeep
# ---------------------------------------------------------------------------


def extend_inventory_horizon(
    cur: PgCursor,
    *,
    today: date,
    horizon_days: int,
) -> dict:
    """Roll every active product's ledger forward to today + horizon_days.

    Rows are added after each product's last ledger date with the product's
    current totals. Products that never had a ledger are left alone.

    Returns:
        {"room_rows": int, "ticket_rows": int}
    """
    end = today + timedelta(days=horizon_days)
    room_last, ticket_last = repo.fetch_last_inventory_dates(cur)

    room_rows = 0
    for room_type_id, last in sorted(room_last.items()):
        start = max(last + timedelta(days=1), today)
        if start >= end:
            continue
        room_type = get_room_type(cur, room_type_id)
        if room_type is None:
            continue
        room_rows += ensure_room_inventory(
            cur,
            room_type_id=room_type_id,
            start=start,
            end=end,
            total_rooms=room_type["total_rooms"],
            strict=False,
        )

    ticket_rows = 0
    for ticket_type_id, last in sorted(ticket_last.items()):
        start = max(last + timedelta(days=1), today)
        if start >= end:
            continue
        ticket_type = get_ticket_type(cur, ticket_type_id)
        if ticket_type is None:
            continue
        ticket_rows += ensure_ticket_inventory(
            cur,
            ticket_type_id=ticket_type_id,
            start=start,
            end=end,
            total_adult_tickets=ticket_type["total_adult_tickets"],
            total_child_tickets=ticket_type["total_child_tickets"],
            strict=False,
        )

    return {"room_rows": room_rows, "ticket_rows": ticket_rows}
