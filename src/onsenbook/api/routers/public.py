"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from onsenbook.api.routes import (
    admin_products,
    admin_reservations,
    reservations,
    search,
    ticket_reservations,
)

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(reservations.router)
router.include_router(ticket_reservations.router)
router.include_router(search.router)
router.include_router(admin_products.router)
router.include_router(admin_reservations.router)
