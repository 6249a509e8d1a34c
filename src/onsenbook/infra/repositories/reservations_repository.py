"""Reservations repository - persistence for room and ticket reservations.

Uses raw SQL with psycopg2 (no ORM). Room reservations live in
``reservations``, ticket reservations in ``ticket_reservations``; both share
the status/cancel_reason enums and the lifecycle columns.
"""

import json
from datetime import datetime
from typing import Any, Sequence

from psycopg2.extensions import cursor as PgCursor

from onsenbook.infra.db import for_update

ROOM_TABLE = "reservations"
TICKET_TABLE = "ticket_reservations"

_COMMON_COLUMNS = (
    "id",
    "user_id",
    "adults",
    "children",
    "first_name",
    "last_name",
    "phone_number",
    "email",
    "nationality",
    "special_requests",
    "total_price",
    "status",
    "cancel_reason",
    "created_at",
    "confirmed_at",
    "cancelled_at",
)

ROOM_COLUMNS = _COMMON_COLUMNS + ("room_type_id", "checkin", "checkout", "room_count")
TICKET_COLUMNS = _COMMON_COLUMNS + ("ticket_type_id", "date")

_COLUMNS_BY_TABLE = {ROOM_TABLE: ROOM_COLUMNS, TICKET_TABLE: TICKET_COLUMNS}


def _row_to_dict(table: str, row: Sequence[Any]) -> dict:
    data = dict(zip(_COLUMNS_BY_TABLE[table], row))
    data["id"] = str(data["id"])
    if isinstance(data.get("special_requests"), str):
        data["special_requests"] = json.loads(data["special_requests"])
    return data


def insert_reservation(
    cur: PgCursor,
    *,
    table: str,
    fields: dict[str, Any],
    create_idempotency_key: str | None = None,
) -> tuple[str | None, bool]:
    """Insert a PENDING reservation with optional idempotency.

    Uses ON CONFLICT DO NOTHING on (user_id, create_idempotency_key) so a
    replayed request maps to the reservation that same user created the
    first time. Keys are scoped per user; another user sending the same key
    gets a reservation of their own.

    Args:
        cur: Database cursor (within transaction).
        table: ROOM_TABLE or TICKET_TABLE.
        fields: Column values (product, dates, party, contact, total_price).
        create_idempotency_key: Optional client-supplied key.

    Returns:
        Tuple of (reservation_id, created).
    """
    columns = [c for c in _COLUMNS_BY_TABLE[table] if c in fields]
    values = [
        json.dumps(fields[c]) if c == "special_requests" else fields[c]
        for c in columns
    ]
    columns.append("create_idempotency_key")
    values.append(create_idempotency_key)
    placeholders = ", ".join(["%s"] * len(columns))

    cur.execute(
        f"""
        INSERT INTO {table} ({', '.join(columns)})
        VALUES ({placeholders})
        ON CONFLICT (user_id, create_idempotency_key)
        WHERE create_idempotency_key IS NOT NULL
        DO NOTHING
        RETURNING id
        """,
        values,
    )
    row = cur.fetchone()
    if row is not None:
        return (str(row[0]), True)

    cur.execute(
        f"SELECT id FROM {table} WHERE user_id = %s AND create_idempotency_key = %s",
        (fields["user_id"], create_idempotency_key),
    )
    row = cur.fetchone()
    if row is not None:
        return (str(row[0]), False)

    return (None, False)


def get_reservation(
    cur: PgCursor,
    *,
    table: str,
    reservation_id: str,
    lock: bool = False,
) -> dict | None:
    """Fetch a reservation by id, optionally locking it FOR UPDATE."""
    columns = _COLUMNS_BY_TABLE[table]
    query = f"SELECT {', '.join(columns)} FROM {table} WHERE id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (reservation_id,))
    row = cur.fetchone()
    if row is None:
        return None
    return _row_to_dict(table, row)


def mark_confirmed(cur: PgCursor, *, table: str, reservation_id: str) -> bool:
    """PENDING -> CONFIRMED, guarded by the current status."""
    cur.execute(
        f"""
        UPDATE {table}
        SET status = 'confirmed', confirmed_at = now(), updated_at = now()
        WHERE id = %s AND status = 'pending'
        """,
        (reservation_id,),
    )
    return cur.rowcount == 1


def mark_cancelled(
    cur: PgCursor,
    *,
    table: str,
    reservation_id: str,
    from_status: str,
    cancel_reason: str,
) -> bool:
    """from_status -> CANCELLED with a reason, guarded by the current status."""
    cur.execute(
        f"""
        UPDATE {table}
        SET status = 'cancelled', cancel_reason = %s,
            cancelled_at = now(), updated_at = now()
        WHERE id = %s AND status = %s
        """,
        (cancel_reason, reservation_id, from_status),
    )
    return cur.rowcount == 1


def expire_pending(cur: PgCursor, *, table: str, created_before: datetime) -> list[str]:
    """Cancel every PENDING reservation created before the cutoff.

    Conditional on status = 'pending', so overlapping sweeps never touch
    the same row twice.

    Returns:
        Ids of the reservations expired by this call.
    """
    cur.execute(
        f"""
        UPDATE {table}
        SET status = 'cancelled', cancel_reason = 'auto_expired',
            cancelled_at = now(), updated_at = now()
        WHERE status = 'pending' AND created_at < %s
        RETURNING id
        """,
        (created_before,),
    )
    return [str(row[0]) for row in cur.fetchall()]


def list_for_user(
    cur: PgCursor,
    *,
    table: str,
    user_id: int,
    include_expired: bool = False,
    limit: int = 100,
) -> list[dict]:
    """A user's reservations, newest first.

    Reservations cancelled by auto-expiry are hidden unless include_expired.
    """
    columns = _COLUMNS_BY_TABLE[table]
    conditions = ["user_id = %s"]
    if not include_expired:
        conditions.append(
            "NOT (status = 'cancelled' AND cancel_reason = 'auto_expired')"
        )
    cur.execute(
        f"""
        SELECT {', '.join(columns)}
        FROM {table}
        WHERE {' AND '.join(conditions)}
        ORDER BY created_at DESC
        LIMIT %s
        """,
        (user_id, limit),
    )
    return [_row_to_dict(table, row) for row in cur.fetchall()]


def _with_user(table: str, row: Sequence[Any]) -> dict:
    columns = _COLUMNS_BY_TABLE[table]
    data = _row_to_dict(table, row[: len(columns)])
    nickname, email = row[len(columns) :]
    data["user"] = {"id": data["user_id"], "nickname": nickname, "email": email}
    return data


def list_all(cur: PgCursor, *, table: str, limit: int, offset: int) -> tuple[list[dict], int]:
    """One page of every user's reservations, newest first, with the owner.

    Returns:
        Tuple of (page items, total row count).
    """
    select = ", ".join(f"r.{c}" for c in _COLUMNS_BY_TABLE[table])
    cur.execute(
        f"""
        SELECT {select}, u.nickname, u.email
        FROM {table} r
        LEFT JOIN users u ON u.id = r.user_id
        ORDER BY r.created_at DESC, r.id
        LIMIT %s OFFSET %s
        """,
        (limit, offset),
    )
    items = [_with_user(table, row) for row in cur.fetchall()]
    cur.execute(f"SELECT COUNT(*) FROM {table}")
    total = cur.fetchone()[0]
    return items, total


def get_with_user(cur: PgCursor, *, table: str, reservation_id: str) -> dict | None:
    """Fetch a reservation by id together with its owner's nickname and email."""
    select = ", ".join(f"r.{c}" for c in _COLUMNS_BY_TABLE[table])
    cur.execute(
        f"""
        SELECT {select}, u.nickname, u.email
        FROM {table} r
        LEFT JOIN users u ON u.id = r.user_id
        WHERE r.id = %s
        """,
        (reservation_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _with_user(table, row)


def lock_user_reservations(cur: PgCursor, *, table: str, user_id: int) -> list[dict]:
    """Lock all of a user's reservations FOR UPDATE (deterministic order)."""
    columns = _COLUMNS_BY_TABLE[table]
    rows = for_update(
        cur,
        f"SELECT {', '.join(columns)} FROM {table} WHERE user_id = %s ORDER BY id",
        (user_id,),
        many=True,
    )
    return [_row_to_dict(table, row) for row in rows]


def delete_user_reservations(cur: PgCursor, *, table: str, user_id: int) -> int:
    cur.execute(f"DELETE FROM {table} WHERE user_id = %s", (user_id,))
    return cur.rowcount


def lock_user(cur: PgCursor, user_id: int) -> bool:
    return for_update(cur, "SELECT id FROM users WHERE id = %s", (user_id,)) is not None


def delete_user(cur: PgCursor, user_id: int) -> bool:
    cur.execute("DELETE FROM users WHERE id = %s", (user_id,))
    return cur.rowcount == 1
