"""Expire reservations domain logic - cancel stale PENDING reservations.

Pending reservations never debited the ledger, so expiring them is a pure
status change: one conditional UPDATE per reservation kind, guarded by
status = 'pending'. Overlapping sweeps, or a confirm racing a sweep, can
never both win on the same row.
"""

from datetime import datetime, timedelta

from onsenbook.domain.errors import ValidationError
from onsenbook.infra.db import txn
from onsenbook.infra.repositories import reservations_repository as repo
from onsenbook.infra.time import utc_now
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


def sweep_expired(
    *,
    threshold_minutes: int,
    now: datetime | None = None,
) -> dict:
    """Cancel with reason auto_expired every PENDING reservation older than the threshold.

    Args:
        threshold_minutes: Age after which a pending reservation expires.
        now: Reference time (defaults to utc_now()).

    Returns:
        {"cutoff": datetime, "rooms": [ids], "tickets": [ids], "expired": int}

    Raises:
        ValidationError: If threshold_minutes is negative.
    """
    if threshold_minutes < 0:
        raise ValidationError("threshold_minutes must be >= 0")

    now = now or utc_now()
    cutoff = now - timedelta(minutes=threshold_minutes)

    with txn() as cur:
        rooms = repo.expire_pending(cur, table=repo.ROOM_TABLE, created_before=cutoff)
        tickets = repo.expire_pending(cur, table=repo.TICKET_TABLE, created_before=cutoff)

    expired = len(rooms) + len(tickets)
    if expired:
        logger.info(
            "expired pending reservations",
            extra={
                "extra_fields": safe_log_context(
                    cutoff=cutoff, rooms=len(rooms), tickets=len(tickets)
                )
            },
        )
    return {"cutoff": cutoff, "rooms": rooms, "tickets": tickets, "expired": expired}
