"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an Alembic context.
DATABASE_URL may be a URL or a libpq key=value DSN; DB_PASSWORD fills in a
missing password in either form.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url

DRIVERNAME = "postgresql+psycopg2"


def _url_from_libpq_dsn(dsn: str, fallback_password: str | None) -> URL:
    params = parse_dsn(dsn)
    host = params.get("host")
    query = {}
    if host and host.startswith("/"):
        # Unix socket directory (e.g. Cloud SQL) goes in the query string.
        query["host"] = host
        host = None
    return URL.create(
        DRIVERNAME,
        username=params.get("user"),
        password=params.get("password") or fallback_password,
        host=host,
        port=int(params["port"]) if params.get("port") else None,
        database=params.get("dbname"),
        query=query,
    )


def database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL, with the psycopg2 driver.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    fallback_password = os.environ.get("DB_PASSWORD") or None

    if "://" not in raw:
        url = _url_from_libpq_dsn(raw, fallback_password)
    else:
        url = make_url(raw.replace("postgres://", "postgresql://", 1))
        if url.drivername == "postgresql":
            url = url.set(drivername=DRIVERNAME)
        if not url.password and fallback_password:
            url = url.set(password=fallback_password)

    return url.render_as_string(hide_password=False)
