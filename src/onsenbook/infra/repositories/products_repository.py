"""Products repository - room types, ticket types and seasonal pricing.

Uses raw SQL with psycopg2 (no ORM). Soft-deleted products
(deleted_at IS NOT NULL) are invisible to every reader here.
"""

from datetime import date
from typing import Any, Sequence

from psycopg2.extensions import cursor as PgCursor

from onsenbook.infra.db import fetchall, fetchone

_ROOM_TYPE_COLUMNS = (
    "id",
    "lodge_id",
    "name",
    "description",
    "base_price",
    "weekend_price",
    "max_adults",
    "max_children",
    "total_rooms",
)

_TICKET_TYPE_COLUMNS = (
    "id",
    "lodge_id",
    "name",
    "description",
    "adult_price",
    "child_price",
    "adult_weekend_price",
    "child_weekend_price",
    "total_adult_tickets",
    "total_child_tickets",
)

# Columns an admin update may touch.
ROOM_TYPE_UPDATABLE = frozenset(_ROOM_TYPE_COLUMNS) - {"id", "lodge_id"}
TICKET_TYPE_UPDATABLE = frozenset(_TICKET_TYPE_COLUMNS) - {"id", "lodge_id"}


def _select_product(
    cur: PgCursor, table: str, columns: Sequence[str], product_id: int, lock: bool
) -> dict | None:
    query = (
        f"SELECT {', '.join(columns)} FROM {table} "
        "WHERE id = %s AND deleted_at IS NULL"
    )
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (product_id,))
    row = cur.fetchone()
    if row is None:
        return None
    return dict(zip(columns, row))


def get_room_type(cur: PgCursor, room_type_id: int, *, lock: bool = False) -> dict | None:
    """Fetch an active room type by id."""
    return _select_product(cur, "room_types", _ROOM_TYPE_COLUMNS, room_type_id, lock)


def get_ticket_type(cur: PgCursor, ticket_type_id: int, *, lock: bool = False) -> dict | None:
    """Fetch an active ticket type by id."""
    return _select_product(
        cur, "ticket_types", _TICKET_TYPE_COLUMNS, ticket_type_id, lock
    )


def fetch_seasonal_pricing(cur: PgCursor, room_type_ids: Sequence[int]) -> dict[int, list[dict]]:
    """Seasonal overrides per room type, ordered by (date_from, id)."""
    result: dict[int, list[dict]] = {rid: [] for rid in room_type_ids}
    if not room_type_ids:
        return result
    rows = fetchall(
        cur,
        """
        SELECT room_type_id, date_from, date_to, base_price, weekend_price
        FROM seasonal_pricing
        WHERE room_type_id = ANY(%s)
        ORDER BY room_type_id, date_from, id
        """,
        (list(room_type_ids),),
    )
    for room_type_id, date_from, date_to, base_price, weekend_price in rows:
        result.setdefault(room_type_id, []).append(
            {
                "date_from": date_from,
                "date_to": date_to,
                "base_price": base_price,
                "weekend_price": weekend_price,
            }
        )
    return result


def _contains_pattern(text: str) -> str:
    """ILIKE pattern matching text literally anywhere in the column."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def lodge_exists(cur: PgCursor, lodge_id: int) -> bool:
    return fetchone(cur, "SELECT 1 FROM lodges WHERE id = %s", (lodge_id,)) is not None


def insert_room_type(cur: PgCursor, *, fields: dict[str, Any]) -> int:
    """Insert a room type and return its id."""
    columns = [c for c in _ROOM_TYPE_COLUMNS if c != "id" and c in fields]
    placeholders = ", ".join(["%s"] * len(columns))
    cur.execute(
        f"INSERT INTO room_types ({', '.join(columns)}) "
        f"VALUES ({placeholders}) RETURNING id",
        [fields[c] for c in columns],
    )
    return cur.fetchone()[0]


def insert_ticket_type(cur: PgCursor, *, fields: dict[str, Any]) -> int:
    """Insert a ticket type and return its id."""
    columns = [c for c in _TICKET_TYPE_COLUMNS if c != "id" and c in fields]
    placeholders = ", ".join(["%s"] * len(columns))
    cur.execute(
        f"INSERT INTO ticket_types ({', '.join(columns)}) "
        f"VALUES ({placeholders}) RETURNING id",
        [fields[c] for c in columns],
    )
    return cur.fetchone()[0]


def _update_product(
    cur: PgCursor,
    table: str,
    allowed: frozenset,
    product_id: int,
    changes: dict[str, Any],
) -> None:
    columns = sorted(c for c in changes if c in allowed)
    if not columns:
        return
    assignments = ", ".join(f"{c} = %s" for c in columns)
    cur.execute(
        f"UPDATE {table} SET {assignments}, updated_at = now() "
        "WHERE id = %s AND deleted_at IS NULL",
        [changes[c] for c in columns] + [product_id],
    )


def update_room_type(cur: PgCursor, room_type_id: int, changes: dict[str, Any]) -> None:
    _update_product(cur, "room_types", ROOM_TYPE_UPDATABLE, room_type_id, changes)


def update_ticket_type(cur: PgCursor, ticket_type_id: int, changes: dict[str, Any]) -> None:
    _update_product(cur, "ticket_types", TICKET_TYPE_UPDATABLE, ticket_type_id, changes)


def soft_delete_room_type(cur: PgCursor, room_type_id: int) -> bool:
    cur.execute(
        """
        UPDATE room_types SET deleted_at = now(), updated_at = now()
        WHERE id = %s AND deleted_at IS NULL
        """,
        (room_type_id,),
    )
    return cur.rowcount == 1


def soft_delete_ticket_type(cur: PgCursor, ticket_type_id: int) -> bool:
    cur.execute(
        """
        UPDATE ticket_types SET deleted_at = now(), updated_at = now()
        WHERE id = %s AND deleted_at IS NULL
        """,
        (ticket_type_id,),
    )
    return cur.rowcount == 1


def replace_seasonal_pricing(
    cur: PgCursor,
    *,
    room_type_id: int,
    seasons: Sequence[dict],
) -> None:
    """Replace all seasonal overrides of a room type."""
    cur.execute("DELETE FROM seasonal_pricing WHERE room_type_id = %s", (room_type_id,))
    for season in seasons:
        cur.execute(
            """
            INSERT INTO seasonal_pricing
                (room_type_id, date_from, date_to, base_price, weekend_price)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (
                room_type_id,
                season["date_from"],
                season["date_to"],
                season["base_price"],
                season["weekend_price"],
            ),
        )


def search_room_candidates(
    cur: PgCursor,
    *,
    checkin: date,
    checkout: date,
    night_count: int,
    adults: int,
    children: int,
    room_count: int,
    region: str | None,
    accommodation_type: str | None,
) -> list[dict]:
    """Room types whose room_count rooms fit the party, open on every night.

    A night without a ledger row counts as unavailable (HAVING COUNT = nights).
    """
    conditions = [
        "rt.deleted_at IS NULL",
        "rt.max_adults * %s >= %s",
        "rt.max_children * %s >= %s",
    ]
    params: list[Any] = [room_count, adults, room_count, children]
    if region:
        conditions.append("l.address ILIKE %s")
        params.append(_contains_pattern(region))
    if accommodation_type:
        conditions.append("l.accommodation_type = %s")
        params.append(accommodation_type)

    where_clause = " AND ".join(conditions)
    cur.execute(
        f"""
        SELECT rt.id, rt.lodge_id, l.name, l.address, rt.name,
               rt.base_price, rt.weekend_price, rt.max_adults, rt.max_children,
               MIN(ri.available_rooms)
        FROM room_types rt
        JOIN lodges l ON l.id = rt.lodge_id
        JOIN room_inventory ri
          ON ri.room_type_id = rt.id
         AND ri.date >= %s AND ri.date < %s
        WHERE {where_clause}
        GROUP BY rt.id, l.id
        HAVING COUNT(ri.date) = %s AND MIN(ri.available_rooms) >= %s
        ORDER BY rt.lodge_id, rt.id
        """,
        [checkin, checkout, *params, night_count, room_count],
    )
    return [
        {
            "room_type_id": row[0],
            "lodge_id": row[1],
            "lodge_name": row[2],
            "region": row[3],
            "room_type_name": row[4],
            "base_price": row[5],
            "weekend_price": row[6],
            "max_adults": row[7],
            "max_children": row[8],
            "min_available_rooms": row[9],
        }
        for row in cur.fetchall()
    ]


def search_ticket_candidates(
    cur: PgCursor,
    *,
    day: date,
    adults: int,
    children: int,
    region: str | None,
) -> list[dict]:
    """Ticket types whose ledger row for day covers both pools."""
    conditions = [
        "tt.deleted_at IS NULL",
        "ti.date = %s",
        "ti.available_adult_tickets >= %s",
        "ti.available_child_tickets >= %s",
    ]
    params: list[Any] = [day, adults, children]
    if region:
        conditions.append("l.address ILIKE %s")
        params.append(_contains_pattern(region))

    where_clause = " AND ".join(conditions)
    cur.execute(
        f"""
        SELECT tt.id, tt.lodge_id, l.name, l.address, tt.name, tt.description,
               tt.adult_price, tt.child_price,
               tt.adult_weekend_price, tt.child_weekend_price,
               ti.available_adult_tickets, ti.available_child_tickets
        FROM ticket_types tt
        JOIN lodges l ON l.id = tt.lodge_id
        JOIN ticket_inventory ti ON ti.ticket_type_id = tt.id
        WHERE {where_clause}
        ORDER BY tt.lodge_id, tt.id
        """,
        params,
    )
    return [
        {
            "ticket_type_id": row[0],
            "lodge_id": row[1],
            "lodge_name": row[2],
            "region": row[3],
            "name": row[4],
            "description": row[5],
            "adult_price": row[6],
            "child_price": row[7],
            "adult_weekend_price": row[8],
            "child_weekend_price": row[9],
            "available_adult_tickets": row[10],
            "available_child_tickets": row[11],
        }
        for row in cur.fetchall()
    ]
