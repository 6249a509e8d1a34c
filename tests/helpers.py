"""Shared test helper functions for onsenbook tests.

These are NOT fixtures - they are regular functions importable from both
conftest.py and individual test files.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

RESERVATION_ID = "6f1c2d9e-8a44-4c1b-9d0e-2b7a51c3e001"


def make_cursor(rowcount: int = 1) -> MagicMock:
    """Mock psycopg2 cursor; set fetchone/fetchall per test."""
    cur = MagicMock()
    cur.rowcount = rowcount
    cur.fetchone.return_value = None
    cur.fetchall.return_value = []
    return cur


def fake_txn(cur: MagicMock):
    """Replacement for infra.db.txn yielding the given cursor."""

    @contextmanager
    def _txn(conn=None):
        yield cur

    return _txn


def fake_run_in_txn(cur: MagicMock):
    """Replacement for infra.db.run_in_txn running work once on cur."""

    def _run(work, **kwargs):
        return work(cur)

    return _run


def executed_sql(cur: MagicMock) -> list[str]:
    """SQL text of every execute() call, whitespace-collapsed."""
    return [" ".join(c.args[0].split()) for c in cur.execute.call_args_list]


def contact_fields() -> dict:
    return {
        "first_name": "Hana",
        "last_name": "Sato",
        "phone_number": "+81 90 1234 5678",
        "email": "hana@example.com",
        "nationality": "JP",
        "special_requests": ["late check-in"],
    }


def room_type_row(**overrides) -> dict:
    row = {
        "id": 10,
        "lodge_id": 1,
        "name": "Garden room",
        "description": None,
        "base_price": 100000,
        "weekend_price": 150000,
        "max_adults": 2,
        "max_children": 1,
        "total_rooms": 5,
    }
    row.update(overrides)
    return row


def ticket_type_row(**overrides) -> dict:
    row = {
        "id": 20,
        "lodge_id": 1,
        "name": "Day bath",
        "description": None,
        "adult_price": 15000,
        "child_price": 8000,
        "adult_weekend_price": 18000,
        "child_weekend_price": None,
        "total_adult_tickets": 50,
        "total_child_tickets": 20,
    }
    row.update(overrides)
    return row


def room_reservation(**overrides) -> dict:
    row = {
        "id": RESERVATION_ID,
        "user_id": 7,
        "adults": 2,
        "children": 0,
        "first_name": "Hana",
        "last_name": "Sato",
        "phone_number": "+81 90 1234 5678",
        "email": None,
        "nationality": None,
        "special_requests": [],
        "total_price": 400000,
        "status": "pending",
        "cancel_reason": None,
        "created_at": datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
        "confirmed_at": None,
        "cancelled_at": None,
        "room_type_id": 10,
        "checkin": date(2024, 7, 1),
        "checkout": date(2024, 7, 3),
        "room_count": 2,
    }
    row.update(overrides)
    return row


def ticket_reservation(**overrides) -> dict:
    row = room_reservation()
    for key in ("room_type_id", "checkin", "checkout", "room_count"):
        del row[key]
    row.update({"ticket_type_id": 20, "date": date(2024, 7, 6), "adults": 2, "children": 1})
    row.update(overrides)
    return row
