"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Tunables for the reservation engine."""

    app_role: str = "public"
    reservation_expiry_minutes: int = 15
    sweep_interval_seconds: float = 60.0
    inventory_horizon_days: int = 365
    txn_retry_attempts: int = 3
    txn_retry_base_delay_seconds: float = 0.05


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_settings() -> Settings:
    """Load settings from environment.

    Read on every call so tests can patch os.environ.

    Raises:
        RuntimeError: If a numeric variable is malformed or out of range.
    """
    return Settings(
        app_role=os.environ.get("APP_ROLE", "public"),
        reservation_expiry_minutes=_int_env("RESERVATION_EXPIRY_MINUTES", 15, minimum=1),
        sweep_interval_seconds=_float_env("SWEEP_INTERVAL_SECONDS", 60.0, minimum=1.0),
        inventory_horizon_days=_int_env("INVENTORY_HORIZON_DAYS", 365, minimum=1),
        txn_retry_attempts=_int_env("TXN_RETRY_ATTEMPTS", 3, minimum=1),
        txn_retry_base_delay_seconds=_float_env("TXN_RETRY_BASE_DELAY_SECONDS", 0.05),
    )
