"""Tests for availability search and quotes (patched persistence, no DB)."""

from datetime import date
from unittest.mock import patch

import pytest

from onsenbook.domain import search
from onsenbook.domain.errors import ProductNotFound, ValidationError
from onsenbook.infra.repositories import products_repository as repo

from .helpers import executed_sql, fake_txn, make_cursor, room_type_row, ticket_type_row


@pytest.fixture
def cur(monkeypatch):
    cur = make_cursor()
    monkeypatch.setattr(search, "txn", fake_txn(cur))
    return cur


def _room_candidate(**overrides) -> dict:
    row = {
        "room_type_id": 10,
        "lodge_id": 1,
        "lodge_name": "Yumoto",
        "region": "Hakone, Kanagawa",
        "room_type_name": "Garden room",
        "base_price": 100000,
        "weekend_price": 150000,
        "max_adults": 2,
        "max_children": 1,
        "min_available_rooms": 3,
    }
    row.update(overrides)
    return row


class TestNormalizeRegion:
    @pytest.mark.parametrize("value", [None, "", "  ", "All", "all", "전체"])
    def test_means_no_filter(self, value):
        assert search.normalize_region(value) is None

    def test_keeps_real_region(self):
        assert search.normalize_region(" Hakone ") == "Hakone"


class TestSearchRooms:
    def test_results_priced_for_the_stay(self, cur):
        season = {
            "date_from": date(2024, 7, 1),
            "date_to": date(2024, 7, 31),
            "base_price": 100000,
            "weekend_price": 200000,
        }
        with patch.object(
            repo, "search_room_candidates", return_value=[_room_candidate()]
        ) as candidates, patch.object(
            repo, "fetch_seasonal_pricing", return_value={10: [season]}
        ):
            results = search.search_rooms(
                checkin=date(2024, 7, 5),
                checkout=date(2024, 7, 8),
                adults=2,
                room_count=2,
                region="All",
            )

        kwargs = candidates.call_args.kwargs
        assert kwargs["night_count"] == 3
        assert kwargs["room_count"] == 2
        assert kwargs["region"] is None
        # Fri 100000 + Sat 200000 + Sun 200000, two rooms
        assert results[0]["total_price"] == 1000000
        assert results[0]["nightly_average"] == 166666
        assert results[0]["min_available_rooms"] == 3

    def test_no_candidates(self, cur):
        with patch.object(repo, "search_room_candidates", return_value=[]), patch.object(
            repo, "fetch_seasonal_pricing", return_value={}
        ):
            assert search.search_rooms(
                checkin=date(2024, 7, 1), checkout=date(2024, 7, 2), adults=1
            ) == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"checkin": date(2024, 7, 2), "checkout": date(2024, 7, 2), "adults": 1},
            {"checkin": date(2024, 7, 1), "checkout": date(2024, 7, 2), "adults": 0},
            {"checkin": date(2024, 7, 1), "checkout": date(2024, 7, 2), "adults": 1,
             "room_count": 0},
        ],
    )
    def test_bad_criteria(self, cur, kwargs):
        with pytest.raises(ValidationError):
            search.search_rooms(**kwargs)

    def test_candidate_query_requires_every_night(self):
        cur = make_cursor()
        repo.search_room_candidates(
            cur,
            checkin=date(2024, 7, 1),
            checkout=date(2024, 7, 3),
            night_count=2,
            adults=3,
            children=0,
            room_count=2,
            region="Hakone",
            accommodation_type=None,
        )
        sql = executed_sql(cur)[0]
        assert "HAVING COUNT(ri.date) = %s AND MIN(ri.available_rooms) >= %s" in sql
        assert "rt.deleted_at IS NULL" in sql
        assert "l.address ILIKE %s" in sql
        params = cur.execute.call_args.args[1]
        assert params[-2:] == [2, 2]
        assert "%Hakone%" in params


class TestSearchTickets:
    def test_priced_for_party(self, cur):
        candidate = {
            **ticket_type_row(),
            "ticket_type_id": 20,
            "available_adult_tickets": 10,
            "available_child_tickets": 4,
        }
        with patch.object(
            repo, "search_ticket_candidates", return_value=[candidate]
        ) as candidates:
            results = search.search_tickets(
                day=date(2024, 7, 2), adults=2, children=1, region="전체"
            )
        assert candidates.call_args.kwargs["region"] is None
        assert results[0]["total_price"] == 2 * 15000 + 8000
        assert results[0]["date"] == date(2024, 7, 2)

    def test_empty_party_rejected(self, cur):
        with pytest.raises(ValidationError):
            search.search_tickets(day=date(2024, 7, 2), adults=0, children=0)


class TestQuoteRoomStay:
    def test_breakdown_and_floored_average(self, cur):
        with patch.object(repo, "get_room_type", return_value=room_type_row()), patch.object(
            repo, "fetch_seasonal_pricing", return_value={10: []}
        ):
            quote = search.quote_room_stay(
                room_type_id=10, checkin=date(2024, 8, 2), checkout=date(2024, 8, 5)
            )
        # Fri 100000 + Sat 150000 + Sun 150000
        assert quote["total_price"] == 400000
        assert quote["nightly_average"] == 133333
        assert [n["price"] for n in quote["breakdown"]] == [100000, 150000, 150000]

    def test_unknown_room_type(self, cur):
        with patch.object(repo, "get_room_type", return_value=None):
            with pytest.raises(ProductNotFound):
                search.quote_room_stay(
                    room_type_id=10, checkin=date(2024, 8, 2), checkout=date(2024, 8, 5)
                )
