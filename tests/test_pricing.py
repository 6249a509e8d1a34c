"""Tests for the pricing engine (pure, no DB)."""

from datetime import date

import pytest

from onsenbook.domain.errors import ValidationError
from onsenbook.domain.pricing import (
    Rate,
    SeasonalPrice,
    is_weekend,
    nightly_average,
    nights,
    price_breakdown,
    price_for_date,
    ticket_total_price,
    total_price,
    validate_seasons,
)

JULY_SEASON = SeasonalPrice(
    date_from=date(2024, 7, 1),
    date_to=date(2024, 7, 31),
    base_price=100000,
    weekend_price=200000,
)


def _rate(seasons=(JULY_SEASON,), weekend_price=150000) -> Rate:
    return Rate(base_price=100000, weekend_price=weekend_price, seasons=tuple(seasons))


class TestPriceForDate:
    def test_weekend_inside_season_uses_season_weekend_price(self):
        # 2024-07-06 is a Saturday
        assert price_for_date(_rate(), date(2024, 7, 6)) == 200000

    def test_weekday_inside_season_uses_season_base_price(self):
        # 2024-07-02 is a Tuesday
        assert price_for_date(_rate(), date(2024, 7, 2)) == 100000

    def test_season_weekday_price_wins_over_product_base(self):
        season = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 31), 120000, 210000)
        assert price_for_date(_rate([season]), date(2024, 7, 2)) == 120000

    def test_weekend_outside_season_uses_product_weekend_price(self):
        # 2024-08-03 is a Saturday
        assert price_for_date(_rate(), date(2024, 8, 3)) == 150000

    def test_weekend_without_weekend_price_falls_back_to_base(self):
        assert price_for_date(_rate(weekend_price=None), date(2024, 8, 3)) == 100000

    def test_season_bounds_are_inclusive(self):
        season = SeasonalPrice(date(2024, 9, 10), date(2024, 9, 12), 90000, 95000)
        rate = _rate([season])
        assert price_for_date(rate, date(2024, 9, 10)) == 90000
        assert price_for_date(rate, date(2024, 9, 12)) == 90000
        assert price_for_date(rate, date(2024, 9, 13)) == 100000

    def test_first_matching_season_wins(self):
        first = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 10), 111, 222)
        second = SeasonalPrice(date(2024, 7, 5), date(2024, 7, 20), 333, 444)
        assert price_for_date(_rate([first, second]), date(2024, 7, 8)) == 111

    def test_sunday_is_weekend(self):
        assert is_weekend(date(2024, 7, 7))
        assert not is_weekend(date(2024, 7, 5))


class TestTotals:
    def test_nights_exclude_checkout(self):
        assert nights(date(2024, 7, 1), date(2024, 7, 3)) == [
            date(2024, 7, 1),
            date(2024, 7, 2),
        ]

    def test_nights_empty_when_not_ordered(self):
        assert nights(date(2024, 7, 3), date(2024, 7, 3)) == []

    def test_total_multiplies_units_over_night_sum(self):
        # Fri 07-05 (base 100000) + Sat 07-06 (season weekend 200000), 2 rooms
        stay = nights(date(2024, 7, 5), date(2024, 7, 7))
        assert total_price(_rate(), stay, 2) == 600000

    def test_breakdown_lists_each_night(self):
        stay = nights(date(2024, 7, 5), date(2024, 7, 7))
        assert price_breakdown(_rate(), stay) == [
            {"date": date(2024, 7, 5), "price": 100000, "weekend": False},
            {"date": date(2024, 7, 6), "price": 200000, "weekend": True},
        ]

    def test_nightly_average_is_floored(self):
        assert nightly_average(100001, 2) == 50000
        assert nightly_average(600000, 2, units=2) == 150000

    def test_nightly_average_of_nothing_is_zero(self):
        assert nightly_average(0, 0) == 0


class TestTicketPricing:
    def test_adults_and_children_priced_separately(self):
        adult = Rate(base_price=15000, weekend_price=18000)
        child = Rate(base_price=8000)
        # Saturday: adult weekend price, child has no weekend price
        total = ticket_total_price(adult, child, date(2024, 7, 6), adults=2, children=1)
        assert total == 2 * 18000 + 8000

    def test_weekday_ticket(self):
        adult = Rate(base_price=15000, weekend_price=18000)
        child = Rate(base_price=8000, weekend_price=9000)
        total = ticket_total_price(adult, child, date(2024, 7, 2), adults=1, children=2)
        assert total == 15000 + 2 * 8000


class TestValidateSeasons:
    def test_returns_sorted(self):
        late = SeasonalPrice(date(2024, 8, 1), date(2024, 8, 31), 1, 2)
        early = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 31), 1, 2)
        assert validate_seasons([late, early]) == [early, late]

    def test_adjacent_ranges_are_allowed(self):
        a = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 15), 1, 2)
        b = SeasonalPrice(date(2024, 7, 16), date(2024, 7, 31), 1, 2)
        assert len(validate_seasons([a, b])) == 2

    def test_overlap_rejected(self):
        a = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 15), 1, 2)
        b = SeasonalPrice(date(2024, 7, 15), date(2024, 7, 31), 1, 2)
        with pytest.raises(ValidationError, match="overlap"):
            validate_seasons([a, b])

    def test_inverted_range_rejected(self):
        bad = SeasonalPrice(date(2024, 7, 31), date(2024, 7, 1), 1, 2)
        with pytest.raises(ValidationError):
            validate_seasons([bad])

    def test_negative_price_rejected(self):
        bad = SeasonalPrice(date(2024, 7, 1), date(2024, 7, 2), -1, 2)
        with pytest.raises(ValidationError):
            validate_seasons([bad])
