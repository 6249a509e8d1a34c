"""Reservation state machine - create, confirm and cancel with ledger effects.

Lifecycle:

    (none) --create--> PENDING --confirm--> CONFIRMED --cancel--> CANCELLED
                          |                                          ^
                          +---------------- cancel / expire ---------+

Ledger policy: inventory is debited when a reservation is confirmed, never at
creation, and credited back only when a CONFIRMED reservation is cancelled by
the user or an admin. Each transition runs in one transaction with the
reservation row locked FOR UPDATE, so a reservation is debited at most once
and credited at most once.

The price is computed once, at creation, and stored; later pricing edits
never change it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from psycopg2.extensions import cursor as PgCursor

from onsenbook.domain import inventory
from onsenbook.domain.errors import (
    InsufficientInventory,
    InvalidStateTransition,
    ProductNotFound,
    ReservationNotFound,
    TransactionConflict,
    ValidationError,
)
from onsenbook.domain.pricing import nights, ticket_total_price, total_price
from onsenbook.domain.products import room_rate, ticket_rates
from onsenbook.infra.db import RETRYABLE_ERRORS, run_in_txn, txn
from onsenbook.infra.repositories import products_repository
from onsenbook.infra.repositories import reservations_repository as repo
from onsenbook.infra.settings import get_settings
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class CancelReason(str, Enum):
    USER_REQUESTED = "user_requested"
    ADMIN_FORCED = "admin_forced"
    AUTO_EXPIRED = "auto_expired"


class ReservationKind(str, Enum):
    ROOM = "room"
    TICKET = "ticket"

    @property
    def table(self) -> str:
        return repo.ROOM_TABLE if self is ReservationKind.ROOM else repo.TICKET_TABLE


class LedgerEffect(str, Enum):
    NONE = "none"
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class Contact:
    """Guest contact details attached to a reservation."""

    first_name: str
    last_name: str
    phone_number: str
    email: str | None = None
    nationality: str | None = None
    special_requests: tuple[str, ...] = field(default_factory=tuple)

    def as_fields(self) -> dict:
        return {
            "first_name": self.first_name.strip(),
            "last_name": self.last_name.strip(),
            "phone_number": self.phone_number.strip(),
            "email": self.email,
            "nationality": self.nationality,
            "special_requests": list(self.special_requests),
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _require(condition: bool, message: str, **meta) -> None:
    if not condition:
        raise ValidationError(message, meta=meta or None)


def validate_contact(contact: Contact | None) -> None:
    _require(contact is not None, "contact details are required")
    missing = [
        name
        for name in ("first_name", "last_name", "phone_number")
        if not (getattr(contact, name) or "").strip()
    ]
    _require(not missing, "missing contact fields", fields=missing)


def validate_room_request(
    *,
    user_id: int | None,
    room_type_id: int | None,
    checkin: date | None,
    checkout: date | None,
    adults: int | None,
    children: int | None,
    room_count: int | None,
    contact: Contact | None,
) -> None:
    """Reject a room reservation request before anything is written.

    Raises:
        ValidationError: With the first problem found.
    """
    _require(user_id is not None, "user is required")
    _require(room_type_id is not None, "room_type_id is required")
    _require(checkin is not None and checkout is not None, "checkin and checkout are required")
    _require(checkin < checkout, "checkin must be before checkout")
    _require(adults is not None and adults >= 1, "at least one adult is required")
    _require(children is not None and children >= 0, "children must be >= 0")
    _require(room_count is not None and room_count >= 1, "room_count must be >= 1")
    validate_contact(contact)


def validate_ticket_request(
    *,
    user_id: int | None,
    ticket_type_id: int | None,
    day: date | None,
    adults: int | None,
    children: int | None,
    contact: Contact | None,
) -> None:
    """Reject a ticket reservation request before anything is written."""
    _require(user_id is not None, "user is required")
    _require(ticket_type_id is not None, "ticket_type_id is required")
    _require(day is not None, "date is required")
    _require(adults is not None and adults >= 0, "adults must be >= 0")
    _require(children is not None and children >= 0, "children must be >= 0")
    _require(adults + children >= 1, "at least one ticket is required")
    validate_contact(contact)


def _parse_reservation_id(reservation_id: str) -> str:
    try:
        return str(uuid.UUID(str(reservation_id)))
    except ValueError:
        raise ReservationNotFound("reservation not found")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def create_room_reservation(
    *,
    user_id: int,
    room_type_id: int,
    checkin: date,
    checkout: date,
    adults: int,
    children: int,
    room_count: int,
    contact: Contact,
    idempotency_key: str | None = None,
    cur: PgCursor | None = None,
) -> dict:
    """Create a PENDING room reservation with its price locked in.

    No inventory is touched here; availability is enforced at confirmation.

    Returns:
        Reservation dict plus "created" (False on idempotent replay) and
        "nights".

    Raises:
        ValidationError: Bad input, or party larger than the rooms allow.
        ProductNotFound: Unknown or deleted room type.
    """
    validate_room_request(
        user_id=user_id,
        room_type_id=room_type_id,
        checkin=checkin,
        checkout=checkout,
        adults=adults,
        children=children,
        room_count=room_count,
        contact=contact,
    )
    stay = nights(checkin, checkout)

    def _do(c: PgCursor) -> dict:
        room_type = products_repository.get_room_type(c, room_type_id)
        if room_type is None:
            raise ProductNotFound("room type not found", meta={"room_type_id": room_type_id})

        _require(
            adults <= room_type["max_adults"] * room_count,
            "too many adults for the requested rooms",
            max_adults=room_type["max_adults"] * room_count,
        )
        _require(
            children <= room_type["max_children"] * room_count,
            "too many children for the requested rooms",
            max_children=room_type["max_children"] * room_count,
        )

        seasons = products_repository.fetch_seasonal_pricing(c, [room_type_id])
        rate = room_rate(room_type, seasons.get(room_type_id, []))
        price = total_price(rate, stay, room_count)

        reservation_id, created = repo.insert_reservation(
            c,
            table=repo.ROOM_TABLE,
            fields={
                "room_type_id": room_type_id,
                "user_id": user_id,
                "checkin": checkin,
                "checkout": checkout,
                "adults": adults,
                "children": children,
                "room_count": room_count,
                "total_price": price,
                **contact.as_fields(),
            },
            create_idempotency_key=idempotency_key,
        )
        if reservation_id is None:
            raise RuntimeError("reservation insert returned no id")

        reservation = repo.get_reservation(
            c, table=repo.ROOM_TABLE, reservation_id=reservation_id
        )
        if reservation is None or reservation["user_id"] != user_id:
            raise RuntimeError("idempotency key resolved to another user's reservation")
        return {**reservation, "created": created, "nights": len(stay)}

    if cur is not None:
        result = _do(cur)
    else:
        with txn() as c:
            result = _do(c)

    logger.info(
        "room reservation created",
        extra={
            "extra_fields": safe_log_context(
                reservation_id=result["id"],
                room_type_id=room_type_id,
                nights=len(stay),
                room_count=room_count,
                created=result["created"],
            )
        },
    )
    return result


def create_ticket_reservation(
    *,
    user_id: int,
    ticket_type_id: int,
    day: date,
    adults: int,
    children: int,
    contact: Contact,
    idempotency_key: str | None = None,
    cur: PgCursor | None = None,
) -> dict:
    """Create a PENDING ticket reservation with its price locked in.

    Raises:
        ValidationError: Bad input.
        ProductNotFound: Unknown or deleted ticket type.
    """
    validate_ticket_request(
        user_id=user_id,
        ticket_type_id=ticket_type_id,
        day=day,
        adults=adults,
        children=children,
        contact=contact,
    )

    def _do(c: PgCursor) -> dict:
        ticket_type = products_repository.get_ticket_type(c, ticket_type_id)
        if ticket_type is None:
            raise ProductNotFound(
                "ticket type not found", meta={"ticket_type_id": ticket_type_id}
            )

        adult_rate, child_rate = ticket_rates(ticket_type)
        price = ticket_total_price(
            adult_rate, child_rate, day, adults=adults, children=children
        )

        reservation_id, created = repo.insert_reservation(
            c,
            table=repo.TICKET_TABLE,
            fields={
                "ticket_type_id": ticket_type_id,
                "user_id": user_id,
                "date": day,
                "adults": adults,
                "children": children,
                "total_price": price,
                **contact.as_fields(),
            },
            create_idempotency_key=idempotency_key,
        )
        if reservation_id is None:
            raise RuntimeError("ticket reservation insert returned no id")

        reservation = repo.get_reservation(
            c, table=repo.TICKET_TABLE, reservation_id=reservation_id
        )
        if reservation is None or reservation["user_id"] != user_id:
            raise RuntimeError("idempotency key resolved to another user's reservation")
        return {**reservation, "created": created}

    if cur is not None:
        result = _do(cur)
    else:
        with txn() as c:
            result = _do(c)

    logger.info(
        "ticket reservation created",
        extra={
            "extra_fields": safe_log_context(
                reservation_id=result["id"],
                ticket_type_id=ticket_type_id,
                adults=adults,
                children=children,
                created=result["created"],
            )
        },
    )
    return result


# ---------------------------------------------------------------------------
# Ledger effects per kind
# ---------------------------------------------------------------------------


def _debit(cur: PgCursor, kind: ReservationKind, reservation: dict) -> None:
    """Re-check live availability (rows locked) and debit, all or nothing."""
    if kind is ReservationKind.ROOM:
        stay = nights(reservation["checkin"], reservation["checkout"])
        if not inventory.check_room_availability(
            cur,
            room_type_id=reservation["room_type_id"],
            dates=stay,
            units=reservation["room_count"],
            lock=True,
        ):
            raise InsufficientInventory(
                "not enough rooms available",
                meta={"room_type_id": reservation["room_type_id"]},
            )
        inventory.debit_room_inventory(
            cur,
            room_type_id=reservation["room_type_id"],
            dates=stay,
            units=reservation["room_count"],
        )
    else:
        if not inventory.check_ticket_availability(
            cur,
            ticket_type_id=reservation["ticket_type_id"],
            day=reservation["date"],
            adults=reservation["adults"],
            children=reservation["children"],
            lock=True,
        ):
            raise InsufficientInventory(
                "not enough tickets available for the selected date",
                meta={"ticket_type_id": reservation["ticket_type_id"]},
            )
        inventory.debit_ticket_inventory(
            cur,
            ticket_type_id=reservation["ticket_type_id"],
            day=reservation["date"],
            adults=reservation["adults"],
            children=reservation["children"],
        )


def _credit(cur: PgCursor, kind: ReservationKind, reservation: dict) -> None:
    if kind is ReservationKind.ROOM:
        inventory.credit_room_inventory(
            cur,
            room_type_id=reservation["room_type_id"],
            dates=nights(reservation["checkin"], reservation["checkout"]),
            units=reservation["room_count"],
        )
    else:
        inventory.credit_ticket_inventory(
            cur,
            ticket_type_id=reservation["ticket_type_id"],
            day=reservation["date"],
            adults=reservation["adults"],
            children=reservation["children"],
        )


def _locked_reservation(
    cur: PgCursor, kind: ReservationKind, reservation_id: str, user_id: int | None
) -> dict:
    reservation = repo.get_reservation(
        cur, table=kind.table, reservation_id=reservation_id, lock=True
    )
    # Someone else's reservation looks exactly like a missing one.
    if reservation is None or (user_id is not None and reservation["user_id"] != user_id):
        raise ReservationNotFound("reservation not found")
    return reservation


def _run_transition(work, action: str, reservation_id: str):
    settings = get_settings()
    try:
        return run_in_txn(
            work,
            attempts=settings.txn_retry_attempts,
            base_delay=settings.txn_retry_base_delay_seconds,
        )
    except RETRYABLE_ERRORS as exc:
        logger.error(
            f"{action} gave up after repeated transaction conflicts",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation_id, error=type(exc).__name__
                )
            },
        )
        raise TransactionConflict(
            "reservation is busy, try again", meta={"reservation_id": reservation_id}
        ) from exc


# ---------------------------------------------------------------------------
# Confirm / cancel
# ---------------------------------------------------------------------------


def confirm_reservation(
    kind: ReservationKind,
    reservation_id: str,
    *,
    user_id: int | None = None,
) -> dict:
    """PENDING -> CONFIRMED, debiting the ledger in the same transaction.

    Args:
        kind: Room or ticket reservation.
        reservation_id: Reservation UUID.
        user_id: If given, the reservation must belong to this user.

    Returns:
        The confirmed reservation plus {"changed": True, "ledger": "debit"}.

    Raises:
        ReservationNotFound: Unknown id (or not the user's).
        InvalidStateTransition: Status is not PENDING.
        InsufficientInventory: Live capacity is short; status stays PENDING.
        TransactionConflict: Retries exhausted on serialization failures.
    """
    reservation_id = _parse_reservation_id(reservation_id)

    def _work(cur: PgCursor) -> dict:
        reservation = _locked_reservation(cur, kind, reservation_id, user_id)
        if reservation["status"] != ReservationStatus.PENDING.value:
            raise InvalidStateTransition(
                f"cannot confirm a {reservation['status']} reservation",
                meta={"status": reservation["status"]},
            )

        _debit(cur, kind, reservation)

        if not repo.mark_confirmed(cur, table=kind.table, reservation_id=reservation_id):
            # Row is locked; reaching this means the status guard and the lock disagree.
            raise InvalidStateTransition("reservation changed during confirmation")

        reservation["status"] = ReservationStatus.CONFIRMED.value
        return {**reservation, "changed": True, "ledger": LedgerEffect.DEBIT.value}

    try:
        result = _run_transition(_work, "confirm", reservation_id)
    except InsufficientInventory:
        logger.info(
            "confirm rejected: insufficient inventory",
            extra={
                "extra_fields": safe_log_context(
                    kind=kind.value, reservation_id=reservation_id
                )
            },
        )
        raise

    logger.info(
        "reservation confirmed",
        extra={
            "extra_fields": safe_log_context(kind=kind.value, reservation_id=reservation_id)
        },
    )
    return result


def cancel_reservation(
    kind: ReservationKind,
    reservation_id: str,
    *,
    reason: CancelReason,
    user_id: int | None = None,
) -> dict:
    """Cancel a reservation, crediting the ledger when it had been debited.

    - CANCELLED: no-op, current state returned with changed=False.
    - PENDING: -> CANCELLED, no ledger effect.
    - CONFIRMED + user_requested/admin_forced: credit back, -> CANCELLED.
    - CONFIRMED + auto_expired: confirmed reservations do not expire; logged
      as an inconsistency and left unchanged.

    Returns:
        Reservation dict plus "changed" and "ledger" ("none" or "credit").

    Raises:
        ReservationNotFound: Unknown id (or not the user's).
        TransactionConflict: Retries exhausted on serialization failures.
    """
    reservation_id = _parse_reservation_id(reservation_id)
    reason = CancelReason(reason)

    def _work(cur: PgCursor) -> dict:
        reservation = _locked_reservation(cur, kind, reservation_id, user_id)
        prior = reservation["status"]

        if prior == ReservationStatus.CANCELLED.value:
            return {**reservation, "changed": False, "ledger": LedgerEffect.NONE.value}

        ledger = LedgerEffect.NONE
        if prior == ReservationStatus.CONFIRMED.value:
            if reason is CancelReason.AUTO_EXPIRED:
                logger.error(
                    "auto-expiry requested for a confirmed reservation, ignoring",
                    extra={
                        "extra_fields": safe_log_context(
                            kind=kind.value, reservation_id=reservation_id
                        )
                    },
                )
                return {**reservation, "changed": False, "ledger": LedgerEffect.NONE.value}
            _credit(cur, kind, reservation)
            ledger = LedgerEffect.CREDIT

        if not repo.mark_cancelled(
            cur,
            table=kind.table,
            reservation_id=reservation_id,
            from_status=prior,
            cancel_reason=reason.value,
        ):
            raise InvalidStateTransition("reservation changed during cancellation")

        reservation["status"] = ReservationStatus.CANCELLED.value
        reservation["cancel_reason"] = reason.value
        return {**reservation, "changed": True, "ledger": ledger.value}

    result = _run_transition(_work, "cancel", reservation_id)

    logger.info(
        "reservation cancel processed",
        extra={
            "extra_fields": safe_log_context(
                kind=kind.value,
                reservation_id=reservation_id,
                reason=reason.value,
                changed=result["changed"],
                ledger=result["ledger"],
            )
        },
    )
    return result


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_reservation(
    kind: ReservationKind,
    reservation_id: str,
    *,
    user_id: int | None = None,
) -> dict:
    """Fetch one reservation.

    Raises:
        ReservationNotFound: Unknown id (or not the user's).
    """
    reservation_id = _parse_reservation_id(reservation_id)
    with txn() as cur:
        reservation = repo.get_reservation(
            cur, table=kind.table, reservation_id=reservation_id
        )
    if reservation is None or (user_id is not None and reservation["user_id"] != user_id):
        raise ReservationNotFound("reservation not found")
    return reservation


def list_user_reservations(
    kind: ReservationKind,
    user_id: int,
    *,
    include_expired: bool = False,
) -> list[dict]:
    """A user's reservations, newest first, hiding auto-expired ones by default."""
    with txn() as cur:
        return repo.list_for_user(
            cur, table=kind.table, user_id=user_id, include_expired=include_expired
        )


MAX_PAGE_SIZE = 100


def list_all_reservations(kind: ReservationKind, *, page: int = 1, limit: int = 10) -> dict:
    """Every user's reservations of one kind, newest first, one page at a time.

    Each item carries the owner's id, nickname and email under "user".

    Raises:
        ValidationError: page below 1 or limit outside 1..MAX_PAGE_SIZE.
    """
    _require(page >= 1, "page must be at least 1", field="page")
    _require(
        1 <= limit <= MAX_PAGE_SIZE,
        f"limit must be between 1 and {MAX_PAGE_SIZE}",
        field="limit",
    )
    with txn() as cur:
        items, total = repo.list_all(
            cur, table=kind.table, limit=limit, offset=(page - 1) * limit
        )
    return {"items": items, "total": total, "page": page, "limit": limit}


def get_reservation_with_user(kind: ReservationKind, reservation_id: str) -> dict:
    """Fetch any reservation together with its owner.

    Raises:
        ReservationNotFound: Unknown id.
    """
    reservation_id = _parse_reservation_id(reservation_id)
    with txn() as cur:
        reservation = repo.get_with_user(cur, table=kind.table, reservation_id=reservation_id)
    if reservation is None:
        raise ReservationNotFound("reservation not found")
    return reservation
