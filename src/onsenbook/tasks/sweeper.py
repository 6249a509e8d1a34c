"""Periodic expiry sweeper.

Runs sweep_expired on a fixed interval in a background thread. A failing tick
(datastore unavailable, for instance) is logged and the loop carries on with
the next one.

Usage:
    DATABASE_URL=... python -m onsenbook.tasks.sweeper          # loop
    DATABASE_URL=... python -m onsenbook.tasks.sweeper --once   # single tick
"""

from __future__ import annotations

import argparse
import sys
import threading
from typing import Callable

from onsenbook.domain.expire_reservations import sweep_expired
from onsenbook.infra.settings import get_settings
from onsenbook.observability.correlation import correlation_scope
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)


def run_sweep_once(
    threshold_minutes: int,
    sweep: Callable[..., dict] = sweep_expired,
) -> dict | None:
    """One tick. Returns the sweep result, or None when the tick failed."""
    with correlation_scope():
        try:
            return sweep(threshold_minutes=threshold_minutes)
        except Exception:
            logger.exception("expiry sweep failed, will retry on next tick")
            return None


class ExpirySweeper:
    """Background thread expiring stale pending reservations."""

    def __init__(
        self,
        *,
        interval_seconds: float | None = None,
        threshold_minutes: int | None = None,
        sweep: Callable[..., dict] = sweep_expired,
    ) -> None:
        settings = get_settings()
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.sweep_interval_seconds
        )
        self.threshold_minutes = (
            threshold_minutes
            if threshold_minutes is not None
            else settings.reservation_expiry_minutes
        )
        self._sweep = sweep
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="expiry-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(
            "expiry sweeper started",
            extra={
                "extra_fields": safe_log_context(
                    interval_seconds=self.interval_seconds,
                    threshold_minutes=self.threshold_minutes,
                )
            },
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_forever(self) -> None:
        """Tick immediately, then every interval until stop() is called."""
        while not self._stop.is_set():
            run_sweep_once(self.threshold_minutes, sweep=self._sweep)
            self._stop.wait(self.interval_seconds)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Expire stale pending reservations.")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.once:
        result = run_sweep_once(settings.reservation_expiry_minutes)
        if result is None:
            return 1
        print(f"expired {result['expired']} reservation(s)")
        return 0

    sweeper = ExpirySweeper()
    try:
        sweeper.run_forever()
    except KeyboardInterrupt:
        sweeper.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
