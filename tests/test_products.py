"""Tests for product administration (patched persistence, no DB)."""

from datetime import date, timedelta
from unittest.mock import patch

import pytest

from onsenbook.domain import inventory, products
from onsenbook.domain.errors import ProductNotFound, ValidationError
from onsenbook.domain.pricing import SeasonalPrice
from onsenbook.infra.repositories import inventory_repository
from onsenbook.infra.repositories import products_repository as repo

from .helpers import fake_txn, make_cursor, room_type_row, ticket_type_row

TODAY = date(2025, 3, 1)


@pytest.fixture
def cur(monkeypatch):
    cur = make_cursor()
    monkeypatch.setattr(products, "txn", fake_txn(cur))
    monkeypatch.setattr(products, "current_date", lambda: TODAY)
    return cur


class TestRates:
    def test_room_rate_keeps_season_order(self):
        rows = [
            {"date_from": date(2024, 7, 1), "date_to": date(2024, 7, 31),
             "base_price": 1, "weekend_price": 2},
        ]
        rate = products.room_rate(room_type_row(weekend_price=None), rows)
        assert rate.base_price == 100000
        assert rate.weekend_price is None
        assert rate.seasons == (SeasonalPrice(date(2024, 7, 1), date(2024, 7, 31), 1, 2),)

    def test_ticket_rates(self):
        adult, child = products.ticket_rates(ticket_type_row())
        assert (adult.base_price, adult.weekend_price) == (15000, 18000)
        assert (child.base_price, child.weekend_price) == (8000, None)


class TestCreateRoomType:
    def test_creates_ledger_horizon(self, cur, monkeypatch):
        monkeypatch.setenv("INVENTORY_HORIZON_DAYS", "30")
        season = SeasonalPrice(date(2025, 7, 1), date(2025, 7, 31), 120000, 180000)
        with patch.object(repo, "lodge_exists", return_value=True), patch.object(
            repo, "insert_room_type", return_value=10
        ), patch.object(repo, "replace_seasonal_pricing") as replace, patch.object(
            inventory, "ensure_room_inventory", return_value=30
        ) as ensure:
            result = products.create_room_type(
                lodge_id=1,
                name="Garden room",
                base_price=100000,
                weekend_price=150000,
                max_adults=2,
                max_children=1,
                total_rooms=5,
                seasons=[season],
            )

        ensure.assert_called_once_with(
            cur,
            room_type_id=10,
            start=TODAY,
            end=TODAY + timedelta(days=30),
            total_rooms=5,
        )
        assert replace.call_args.kwargs["seasons"][0]["weekend_price"] == 180000
        assert result["id"] == 10
        assert result["inventory_rows"] == 30

    def test_unknown_lodge(self, cur):
        with patch.object(repo, "lodge_exists", return_value=False), patch.object(
            repo, "insert_room_type"
        ) as insert:
            with pytest.raises(ProductNotFound):
                products.create_room_type(
                    lodge_id=99, name="x", base_price=1, max_adults=1,
                    max_children=0, total_rooms=1,
                )
        insert.assert_not_called()

    def test_overlapping_seasons_rejected_before_write(self, cur):
        a = SeasonalPrice(date(2025, 7, 1), date(2025, 7, 15), 1, 2)
        b = SeasonalPrice(date(2025, 7, 10), date(2025, 7, 31), 1, 2)
        with pytest.raises(ValidationError):
            products.create_room_type(
                lodge_id=1, name="x", base_price=1, max_adults=1,
                max_children=0, total_rooms=1, seasons=[a, b],
            )
        cur.execute.assert_not_called()

    @pytest.mark.parametrize(
        "field,value",
        [("base_price", -1), ("total_rooms", -5), ("max_adults", 0), ("name", " ")],
    )
    def test_bad_fields_rejected(self, cur, field, value):
        kwargs = dict(
            lodge_id=1, name="x", base_price=1, max_adults=1, max_children=0, total_rooms=1
        )
        kwargs[field] = value
        with pytest.raises(ValidationError):
            products.create_room_type(**kwargs)


class TestUpdateRoomType:
    def test_total_change_reconciles_from_today(self, cur):
        with patch.object(
            repo, "get_room_type", side_effect=[room_type_row(total_rooms=10),
                                                room_type_row(total_rooms=6)]
        ), patch.object(repo, "update_room_type") as update, patch.object(
            inventory, "reconcile_room_capacity"
        ) as reconcile:
            result = products.update_room_type(10, {"total_rooms": 6, "id": 99})

        update.assert_called_once_with(cur, 10, {"total_rooms": 6})
        reconcile.assert_called_once_with(
            cur, room_type_id=10, new_total=6, from_date=TODAY
        )
        assert result["total_rooms"] == 6

    def test_price_change_does_not_touch_ledger(self, cur):
        with patch.object(
            repo, "get_room_type", return_value=room_type_row()
        ), patch.object(repo, "update_room_type"), patch.object(
            inventory, "reconcile_room_capacity"
        ) as reconcile:
            products.update_room_type(10, {"base_price": 90000})
        reconcile.assert_not_called()

    def test_unknown_room_type(self, cur):
        with patch.object(repo, "get_room_type", return_value=None):
            with pytest.raises(ProductNotFound):
                products.update_room_type(10, {"base_price": 1})

    @pytest.mark.parametrize("field", ["max_adults", "total_rooms", "base_price", "name"])
    def test_required_field_cannot_be_cleared(self, cur, field):
        with patch.object(repo, "update_room_type") as update:
            with pytest.raises(ValidationError) as exc_info:
                products.update_room_type(10, {field: None})
        assert exc_info.value.meta == {"fields": [field]}
        update.assert_not_called()
        cur.execute.assert_not_called()

    def test_weekend_price_and_description_can_be_cleared(self, cur):
        with patch.object(repo, "get_room_type", return_value=room_type_row()), patch.object(
            repo, "update_room_type"
        ) as update:
            products.update_room_type(10, {"weekend_price": None, "description": None})
        update.assert_called_once_with(cur, 10, {"weekend_price": None, "description": None})


class TestSeasonalPricing:
    def test_replace_validates_and_stores_sorted(self, cur):
        late = SeasonalPrice(date(2025, 8, 1), date(2025, 8, 31), 1, 2)
        early = SeasonalPrice(date(2025, 7, 1), date(2025, 7, 31), 3, 4)
        with patch.object(repo, "get_room_type", return_value=room_type_row()), patch.object(
            repo, "replace_seasonal_pricing"
        ) as replace:
            rows = products.replace_seasonal_pricing(10, [late, early])
        assert [r["date_from"] for r in rows] == [date(2025, 7, 1), date(2025, 8, 1)]
        replace.assert_called_once_with(cur, room_type_id=10, seasons=rows)

    def test_replace_on_deleted_room_type(self, cur):
        with patch.object(repo, "get_room_type", return_value=None):
            with pytest.raises(ProductNotFound):
                products.replace_seasonal_pricing(10, [])


class TestTicketTypes:
    def test_create_builds_two_pool_ledger(self, cur):
        with patch.object(repo, "lodge_exists", return_value=True), patch.object(
            repo, "insert_ticket_type", return_value=20
        ), patch.object(inventory, "ensure_ticket_inventory", return_value=365) as ensure:
            result = products.create_ticket_type(
                lodge_id=1,
                name="Day bath",
                adult_price=15000,
                child_price=8000,
                total_adult_tickets=50,
                total_child_tickets=20,
            )
        kwargs = ensure.call_args.kwargs
        assert kwargs["total_adult_tickets"] == 50
        assert kwargs["total_child_tickets"] == 20
        assert kwargs["end"] - kwargs["start"] == timedelta(days=365)
        assert result["id"] == 20

    def test_update_reconciles_pools_together(self, cur):
        with patch.object(
            repo, "get_ticket_type", return_value=ticket_type_row()
        ), patch.object(repo, "update_ticket_type"), patch.object(
            inventory, "reconcile_ticket_capacity"
        ) as reconcile:
            products.update_ticket_type(20, {"total_child_tickets": 10})
        reconcile.assert_called_once_with(
            cur,
            ticket_type_id=20,
            new_adult_total=50,
            new_child_total=10,
            from_date=TODAY,
        )

    def test_delete_missing(self, cur):
        with patch.object(repo, "soft_delete_ticket_type", return_value=False):
            with pytest.raises(ProductNotFound):
                products.delete_ticket_type(20)

    @pytest.mark.parametrize("field", ["total_adult_tickets", "child_price"])
    def test_required_field_cannot_be_cleared(self, cur, field):
        with patch.object(inventory, "reconcile_ticket_capacity") as reconcile:
            with pytest.raises(ValidationError):
                products.update_ticket_type(20, {field: None})
        reconcile.assert_not_called()

    def test_weekend_prices_can_be_cleared(self, cur):
        with patch.object(repo, "get_ticket_type", return_value=ticket_type_row()), patch.object(
            repo, "update_ticket_type"
        ) as update:
            products.update_ticket_type(20, {"adult_weekend_price": None})
        update.assert_called_once_with(cur, 20, {"adult_weekend_price": None})


class TestSoftDelete:
    def test_delete_room_type(self, cur):
        with patch.object(repo, "soft_delete_room_type", return_value=True) as delete:
            products.delete_room_type(10)
        delete.assert_called_once_with(cur, 10)


class TestExtendHorizon:
    def test_uses_configured_horizon(self, cur, monkeypatch):
        monkeypatch.setenv("INVENTORY_HORIZON_DAYS", "90")
        with patch.object(
            inventory, "extend_inventory_horizon",
            return_value={"room_rows": 2, "ticket_rows": 1},
        ) as extend:
            result = products.extend_horizon()
        extend.assert_called_once_with(cur, today=TODAY, horizon_days=90)
        assert result == {"room_rows": 2, "ticket_rows": 1}


class TestInventoryLedger:
    def test_room_range_defaults_to_thirty_days_from_today(self, cur):
        with patch.object(inventory_repository, "list_room_inventory", return_value=[]) as rows:
            result = products.room_inventory_ledger(lodge_id=1)
        rows.assert_called_once_with(
            cur,
            date_from=TODAY,
            date_to=date(2025, 3, 30),
            room_type_id=None,
            lodge_id=1,
        )
        assert result == {"date_from": TODAY, "date_to": date(2025, 3, 30), "items": []}

    def test_ticket_filters_pass_through(self, cur):
        with patch.object(inventory_repository, "list_ticket_inventory", return_value=[]) as rows:
            products.ticket_inventory_ledger(
                ticket_type_id=20, date_from=date(2025, 7, 1), date_to=date(2025, 7, 1)
            )
        assert rows.call_args.kwargs == {
            "date_from": date(2025, 7, 1),
            "date_to": date(2025, 7, 1),
            "ticket_type_id": 20,
            "lodge_id": None,
        }

    def test_inverted_range_rejected(self, cur):
        with pytest.raises(ValidationError, match="date_to"):
            products.room_inventory_ledger(date_from=date(2025, 7, 2), date_to=date(2025, 7, 1))
        cur.execute.assert_not_called()

    def test_range_longer_than_a_year_rejected(self, cur):
        with pytest.raises(ValidationError):
            products.ticket_inventory_ledger(
                date_from=date(2025, 1, 1), date_to=date(2026, 1, 2)
            )
