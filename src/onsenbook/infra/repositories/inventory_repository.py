"""Inventory repository - persistence for the room and ticket ledgers.

Uses raw SQL with psycopg2 (no ORM).
Every decrement is a conditional UPDATE guarded by the available count;
callers check the boolean result and abort the transaction when it is False.
Every increment is clamped to the row total.
"""

from datetime import date
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


def insert_room_inventory_rows(
    cur: PgCursor,
    *,
    room_type_id: int,
    dates: Sequence[date],
    total_rooms: int,
) -> list[date]:
    """Insert ledger rows for dates that have none.

    Uses ON CONFLICT DO NOTHING; existing rows are left untouched.

    Returns:
        Dates for which a row was actually created.
    """
    if not dates:
        return []
    cur.execute(
        """
        INSERT INTO room_inventory (room_type_id, date, total_rooms, available_rooms)
        SELECT %s, d, %s, %s
        FROM unnest(%s::date[]) AS d
        ON CONFLICT (room_type_id, date) DO NOTHING
        RETURNING date
        """,
        (room_type_id, total_rooms, total_rooms, list(dates)),
    )
    return [row[0] for row in cur.fetchall()]


def fetch_room_inventory(
    cur: PgCursor,
    *,
    room_type_id: int,
    dates: Sequence[date],
    lock: bool = False,
) -> dict[date, tuple[int, int]]:
    """Fetch (total_rooms, available_rooms) keyed by date.

    With lock=True the rows are locked FOR UPDATE in date order.
    """
    query = """
        SELECT date, total_rooms, available_rooms
        FROM room_inventory
        WHERE room_type_id = %s AND date = ANY(%s::date[])
        ORDER BY date
    """
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (room_type_id, list(dates)))
    return {row[0]: (row[1], row[2]) for row in cur.fetchall()}


def decrement_available_rooms(
    cur: PgCursor,
    *,
    room_type_id: int,
    night_date: date,
    units: int,
) -> bool:
    """Decrement available_rooms for one night with an availability guard.

    Returns:
        True if decremented, False if the row is missing or short.
    """
    cur.execute(
        """
        UPDATE room_inventory
        SET available_rooms = available_rooms - %s, updated_at = now()
        WHERE room_type_id = %s
          AND date = %s
          AND available_rooms >= %s
        """,
        (units, room_type_id, night_date, units),
    )
    return cur.rowcount == 1


def increment_available_rooms(
    cur: PgCursor,
    *,
    room_type_id: int,
    night_date: date,
    units: int,
) -> bool:
    """Increment available_rooms for one night, clamped to total_rooms.

    Returns:
        True if a ledger row was updated, False if none exists.
    """
    cur.execute(
        """
        UPDATE room_inventory
        SET available_rooms = LEAST(total_rooms, available_rooms + %s),
            updated_at = now()
        WHERE room_type_id = %s AND date = %s
        """,
        (units, room_type_id, night_date),
    )
    return cur.rowcount == 1


def reconcile_room_totals(
    cur: PgCursor,
    *,
    room_type_id: int,
    new_total: int,
    from_date: date,
) -> int:
    """Set a new total on every row from from_date, keeping reserved counts.

    available := max(new_total - (total - available), 0)

    Returns:
        Number of ledger rows updated.
    """
    cur.execute(
        """
        UPDATE room_inventory
        SET available_rooms = GREATEST(%s - (total_rooms - available_rooms), 0),
            total_rooms = %s,
            updated_at = now()
        WHERE room_type_id = %s AND date >= %s
        """,
        (new_total, new_total, room_type_id, from_date),
    )
    return cur.rowcount


# ---------------------------------------------------------------------------
# Tickets (adult and child pools tracked independently)
# ---------------------------------------------------------------------------


def insert_ticket_inventory_rows(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    dates: Sequence[date],
    total_adult_tickets: int,
    total_child_tickets: int,
) -> list[date]:
    """Insert ticket ledger rows for dates that have none.

    Returns:
        Dates for which a row was actually created.
    """
    if not dates:
        return []
    cur.execute(
        """
        INSERT INTO ticket_inventory (
            ticket_type_id, date,
            total_adult_tickets, available_adult_tickets,
            total_child_tickets, available_child_tickets
        )
        SELECT %s, d, %s, %s, %s, %s
        FROM unnest(%s::date[]) AS d
        ON CONFLICT (ticket_type_id, date) DO NOTHING
        RETURNING date
        """,
        (
            ticket_type_id,
            total_adult_tickets,
            total_adult_tickets,
            total_child_tickets,
            total_child_tickets,
            list(dates),
        ),
    )
    return [row[0] for row in cur.fetchall()]


def fetch_ticket_inventory(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    lock: bool = False,
) -> dict | None:
    """Fetch the ticket ledger row for a day, optionally locked."""
    query = """
        SELECT total_adult_tickets, available_adult_tickets,
               total_child_tickets, available_child_tickets
        FROM ticket_inventory
        WHERE ticket_type_id = %s AND date = %s
    """
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (ticket_type_id, day))
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "total_adult_tickets": row[0],
        "available_adult_tickets": row[1],
        "total_child_tickets": row[2],
        "available_child_tickets": row[3],
    }


def decrement_available_tickets(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
) -> bool:
    """Decrement both pools for a day; all-or-nothing via a double guard."""
    cur.execute(
        """
        UPDATE ticket_inventory
        SET available_adult_tickets = available_adult_tickets - %s,
            available_child_tickets = available_child_tickets - %s,
            updated_at = now()
        WHERE ticket_type_id = %s
          AND date = %s
          AND available_adult_tickets >= %s
          AND available_child_tickets >= %s
        """,
        (adults, children, ticket_type_id, day, adults, children),
    )
    return cur.rowcount == 1


def increment_available_tickets(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
) -> bool:
    """Increment both pools for a day, each clamped to its own total."""
    cur.execute(
        """
        UPDATE ticket_inventory
        SET available_adult_tickets = LEAST(total_adult_tickets, available_adult_tickets + %s),
            available_child_tickets = LEAST(total_child_tickets, available_child_tickets + %s),
            updated_at = now()
        WHERE ticket_type_id = %s AND date = %s
        """,
        (adults, children, ticket_type_id, day),
    )
    return cur.rowcount == 1


def reconcile_ticket_totals(
    cur: PgCursor,
    *,
    ticket_type_id: int,
    new_adult_total: int,
    new_child_total: int,
    from_date: date,
) -> int:
    """Set new pool totals on every row from from_date, keeping sold counts."""
    cur.execute(
        """
        UPDATE ticket_inventory
        SET available_adult_tickets =
                GREATEST(%s - (total_adult_tickets - available_adult_tickets), 0),
            total_adult_tickets = %s,
            available_child_tickets =
                GREATEST(%s - (total_child_tickets - available_child_tickets), 0),
            total_child_tickets = %s,
            updated_at = now()
        WHERE ticket_type_id = %s AND date >= %s
        """,
        (
            new_adult_total,
            new_adult_total,
            new_child_total,
            new_child_total,
            ticket_type_id,
            from_date,
        ),
    )
    return cur.rowcount


def fetch_last_inventory_dates(cur: PgCursor) -> tuple[dict[int, date], dict[int, date]]:
    """Last ledger date per active room type and per active ticket type.

    Products without any ledger row are absent from the result.
    """
    cur.execute(
        """
        SELECT rt.id, MAX(ri.date)
        FROM room_types rt
        JOIN room_inventory ri ON ri.room_type_id = rt.id
        WHERE rt.deleted_at IS NULL
        GROUP BY rt.id
        """
    )
    rooms = {row[0]: row[1] for row in cur.fetchall()}
    cur.execute(
        """
        SELECT tt.id, MAX(ti.date)
        FROM ticket_types tt
        JOIN ticket_inventory ti ON ti.ticket_type_id = tt.id
        WHERE tt.deleted_at IS NULL
        GROUP BY tt.id
        """
    )
    tickets = {row[0]: row[1] for row in cur.fetchall()}
    return rooms, tickets


# ---------------------------------------------------------------------------
# Admin ledger view
# ---------------------------------------------------------------------------


def _ledger_filters(
    product_column: str,
    date_column: str,
    date_from: date,
    date_to: date,
    product_id: int | None,
    lodge_id: int | None,
) -> tuple[str, list]:
    conditions = [f"{date_column} >= %s", f"{date_column} <= %s"]
    params: list = [date_from, date_to]
    if product_id is not None:
        conditions.append(f"{product_column} = %s")
        params.append(product_id)
    if lodge_id is not None:
        conditions.append("p.lodge_id = %s")
        params.append(lodge_id)
    return " AND ".join(conditions), params


def list_room_inventory(
    cur: PgCursor,
    *,
    date_from: date,
    date_to: date,
    room_type_id: int | None = None,
    lodge_id: int | None = None,
) -> list[dict]:
    """Room ledger rows in [date_from, date_to], by room type then date."""
    where_clause, params = _ledger_filters(
        "ri.room_type_id", "ri.date", date_from, date_to, room_type_id, lodge_id
    )
    cur.execute(
        f"""
        SELECT ri.room_type_id, p.lodge_id, p.name, ri.date,
               ri.total_rooms, ri.available_rooms
        FROM room_inventory ri
        JOIN room_types p ON p.id = ri.room_type_id
        WHERE {where_clause}
        ORDER BY ri.room_type_id, ri.date
        """,
        params,
    )
    return [
        {
            "room_type_id": row[0],
            "lodge_id": row[1],
            "room_type_name": row[2],
            "date": row[3],
            "total_rooms": row[4],
            "available_rooms": row[5],
            "reserved_rooms": row[4] - row[5],
        }
        for row in cur.fetchall()
    ]


def list_ticket_inventory(
    cur: PgCursor,
    *,
    date_from: date,
    date_to: date,
    ticket_type_id: int | None = None,
    lodge_id: int | None = None,
) -> list[dict]:
    """Ticket ledger rows in [date_from, date_to], by ticket type then date."""
    where_clause, params = _ledger_filters(
        "ti.ticket_type_id", "ti.date", date_from, date_to, ticket_type_id, lodge_id
    )
    cur.execute(
        f"""
        SELECT ti.ticket_type_id, p.lodge_id, p.name, ti.date,
               ti.total_adult_tickets, ti.available_adult_tickets,
               ti.total_child_tickets, ti.available_child_tickets
        FROM ticket_inventory ti
        JOIN ticket_types p ON p.id = ti.ticket_type_id
        WHERE {where_clause}
        ORDER BY ti.ticket_type_id, ti.date
        """,
        params,
    )
    return [
        {
            "ticket_type_id": row[0],
            "lodge_id": row[1],
            "ticket_type_name": row[2],
            "date": row[3],
            "total_adult_tickets": row[4],
            "available_adult_tickets": row[5],
            "total_child_tickets": row[6],
            "available_child_tickets": row[7],
        }
        for row in cur.fetchall()
    ]
