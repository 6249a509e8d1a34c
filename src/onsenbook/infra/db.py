"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for short, safe transactions
- run_in_txn(): Run a unit of work in a transaction, retrying on
  serialization failures and deadlocks
- fetchone/fetchall: Query helpers
- for_update(): SELECT ... FOR UPDATE helper
"""

import os
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Sequence, TypeVar
from urllib.parse import urlparse

import psycopg2
import psycopg2.errors
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)

T = TypeVar("T")

# Errors after which the whole transaction can safely be replayed.
RETRYABLE_ERRORS = (
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.DeadlockDetected,
)


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    If DB_PASSWORD is set and the DSN carries no password, it is passed
    separately so the secret can live outside the connection string.

    Returns:
        psycopg2 connection object.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    password = os.environ.get("DB_PASSWORD")
    if password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Args:
        conn: Optional existing connection. If None, creates new one.

    Yields:
        Cursor for executing queries within the transaction.

    Example:
        with txn() as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def run_in_txn(
    work: Callable[[PgCursor], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
) -> T:
    """Run work(cur) inside txn(), replaying it on transient conflicts.

    The unit of work is replayed from scratch (new transaction) when Postgres
    reports a serialization failure or a deadlock. Any other exception
    propagates on the first occurrence.

    Args:
        work: Callable receiving the transaction cursor.
        attempts: Total number of tries (>= 1).
        base_delay: First backoff in seconds, doubled on each retry.

    Returns:
        Whatever work returns.

    Raises:
        The last retryable psycopg2 error when all attempts are exhausted.
    """
    attempt = 1
    while True:
        try:
            with txn() as cur:
                return work(cur)
        except RETRYABLE_ERRORS as exc:
            if attempt >= attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "transaction conflict, retrying",
                extra={
                    "extra_fields": safe_log_context(
                        attempt=attempt,
                        delay_seconds=delay,
                        error=type(exc).__name__,
                    )
                },
            )
            time.sleep(delay)
            attempt += 1


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    nowait: bool = False,
    skip_locked: bool = False,
    many: bool = False,
) -> Any:
    """Execute SELECT ... FOR UPDATE and fetch the locked row(s).

    Appends FOR UPDATE clause to the query. Use within a transaction
    to lock the selected rows until commit/rollback.

    Args:
        cur: Database cursor.
        query: SELECT query (without FOR UPDATE).
        params: Query parameters.
        nowait: If True, fail immediately if row is locked.
        skip_locked: If True, skip locked rows.
        many: If True, return all rows instead of the first one.

    Returns:
        Single row tuple (or None), or a list of rows when many=True.

    Raises:
        ValueError: If both nowait and skip_locked are True.
    """
    if nowait and skip_locked:
        raise ValueError("Cannot use both nowait and skip_locked")

    suffix = " FOR UPDATE"
    if nowait:
        suffix += " NOWAIT"
    elif skip_locked:
        suffix += " SKIP LOCKED"

    full_query = query.rstrip().rstrip(";") + suffix
    cur.execute(full_query, params)
    if many:
        return cur.fetchall()
    return cur.fetchone()
