"""Reservation engine schema: products, ledgers, reservations (SQL-only).

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

SQL_DIR = Path(__file__).resolve().parents[1] / "sql"


def upgrade() -> None:
    # exec_driver_sql passes the file untouched, DO $$ ... $$ blocks included.
    op.get_bind().exec_driver_sql((SQL_DIR / "001_initial.sql").read_text(encoding="utf-8"))


def downgrade() -> None:
    op.get_bind().exec_driver_sql(
        """
        DROP TABLE IF EXISTS ticket_reservations, reservations,
            ticket_inventory, room_inventory, seasonal_pricing,
            ticket_types, room_types, lodges, users CASCADE;
        DROP TYPE IF EXISTS cancel_reason;
        DROP TYPE IF EXISTS reservation_status;
        """
    )
