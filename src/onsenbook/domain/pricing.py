"""Pricing engine - nightly and per-unit prices with seasonal overrides.

Pure functions over already-loaded product data; no database access.

Resolution for a single day:
1. The first seasonal override whose [date_from, date_to] contains the day
   (both bounds inclusive) wins. Its weekend price applies on Saturday and
   Sunday, its base price on other days.
2. Without an override, the product weekend price applies on weekends when
   defined, the product base price otherwise.

Amounts are integer currency units. Totals are exact sums; only display
aggregates are floored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, Sequence

from onsenbook.domain.errors import ValidationError

# date.weekday(): Saturday=5, Sunday=6
WEEKEND_DAYS = (5, 6)


@dataclass(frozen=True)
class SeasonalPrice:
    """Date-range-scoped price override, inclusive on both ends."""

    date_from: date
    date_to: date
    base_price: int
    weekend_price: int

    def contains(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to


@dataclass(frozen=True)
class Rate:
    """Everything needed to price one unit of a product for a day."""

    base_price: int
    weekend_price: int | None = None
    seasons: tuple[SeasonalPrice, ...] = field(default_factory=tuple)


def is_weekend(day: date) -> bool:
    return day.weekday() in WEEKEND_DAYS


def nights(checkin: date, checkout: date) -> list[date]:
    """Nights of a stay: check-in inclusive, check-out exclusive."""
    return list(iter_dates(checkin, checkout))


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date in [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def find_season(seasons: Sequence[SeasonalPrice], day: date) -> SeasonalPrice | None:
    """Return the first season containing day, or None."""
    for season in seasons:
        if season.contains(day):
            return season
    return None


def price_for_date(rate: Rate, day: date) -> int:
    """Price of one unit of the product for the given day."""
    weekend = is_weekend(day)
    season = find_season(rate.seasons, day)
    if season is not None:
        return season.weekend_price if weekend else season.base_price

    if weekend and rate.weekend_price is not None:
        return rate.weekend_price
    return rate.base_price


def total_price(rate: Rate, days: Sequence[date], units: int) -> int:
    """units * sum of the daily prices over days."""
    return units * sum(price_for_date(rate, d) for d in days)


def price_breakdown(rate: Rate, days: Sequence[date]) -> list[dict]:
    """Per-day unit prices, for quotes shown to guests."""
    return [
        {"date": d, "price": price_for_date(rate, d), "weekend": is_weekend(d)}
        for d in days
    ]


def ticket_total_price(
    adult_rate: Rate,
    child_rate: Rate,
    day: date,
    *,
    adults: int,
    children: int,
) -> int:
    """Total for a day ticket: adult and child pools priced separately."""
    return adults * price_for_date(adult_rate, day) + children * price_for_date(
        child_rate, day
    )


def nightly_average(total: int, night_count: int, units: int = 1) -> int:
    """Floored average price per night and unit (display only)."""
    if night_count <= 0 or units <= 0:
        return 0
    return total // (night_count * units)


def validate_seasons(seasons: Sequence[SeasonalPrice]) -> list[SeasonalPrice]:
    """Validate seasonal ranges for one product and return them sorted.

    Raises:
        ValidationError: If a range is inverted, a price is negative, or two
            ranges overlap.
    """
    ordered = sorted(seasons, key=lambda s: (s.date_from, s.date_to))
    for season in ordered:
        if season.date_from > season.date_to:
            raise ValidationError(
                "seasonal pricing range starts after it ends",
                meta={"from": str(season.date_from), "to": str(season.date_to)},
            )
        if season.base_price < 0 or season.weekend_price < 0:
            raise ValidationError("seasonal prices must not be negative")

    for previous, current in zip(ordered, ordered[1:]):
        if current.date_from <= previous.date_to:
            raise ValidationError(
                "seasonal pricing ranges overlap",
                meta={
                    "first": f"{previous.date_from}..{previous.date_to}",
                    "second": f"{current.date_from}..{current.date_to}",
                },
            )
    return ordered
