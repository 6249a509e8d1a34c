"""User deletion - remove a user and hand their confirmed capacity back."""

from onsenbook.domain import inventory
from onsenbook.domain.errors import UserNotFound
from onsenbook.domain.pricing import nights
from onsenbook.infra.db import txn
from onsenbook.infra.repositories import reservations_repository as repo
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


def delete_user(user_id: int) -> dict:
    """Delete a user together with all of their reservations.

    In one transaction: lock the user and their reservations of both kinds,
    credit the ledger back for every CONFIRMED reservation, delete the
    reservations, then the user. Pending and cancelled reservations hold no
    capacity and are simply removed.

    Returns:
        {"user_id", "deleted_reservations", "credited_reservations"}

    Raises:
        UserNotFound: If no such user exists.
    """
    with txn() as cur:
        if not repo.lock_user(cur, user_id):
            raise UserNotFound("user not found", meta={"user_id": user_id})

        rooms = repo.lock_user_reservations(cur, table=repo.ROOM_TABLE, user_id=user_id)
        tickets = repo.lock_user_reservations(cur, table=repo.TICKET_TABLE, user_id=user_id)

        credited = 0
        for reservation in rooms:
            if reservation["status"] != "confirmed":
                continue
            inventory.credit_room_inventory(
                cur,
                room_type_id=reservation["room_type_id"],
                dates=nights(reservation["checkin"], reservation["checkout"]),
                units=reservation["room_count"],
            )
            credited += 1
        for reservation in tickets:
            if reservation["status"] != "confirmed":
                continue
            inventory.credit_ticket_inventory(
                cur,
                ticket_type_id=reservation["ticket_type_id"],
                day=reservation["date"],
                adults=reservation["adults"],
                children=reservation["children"],
            )
            credited += 1

        deleted = repo.delete_user_reservations(cur, table=repo.ROOM_TABLE, user_id=user_id)
        deleted += repo.delete_user_reservations(cur, table=repo.TICKET_TABLE, user_id=user_id)
        repo.delete_user(cur, user_id)

    logger.info(
        "user deleted",
        extra={
            "extra_fields": safe_log_context(
                user_id=user_id,
                deleted_reservations=deleted,
                credited_reservations=credited,
            )
        },
    )
    return {
        "user_id": user_id,
        "deleted_reservations": deleted,
        "credited_reservations": credited,
    }
