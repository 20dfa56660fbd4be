# Overview: Pytest coverage for the Stock Store.

import logging

import pytest

from stockledger.errors import ConflictError, ValidationError
from stockledger.extensions import db
from stockledger.services import stock_service


class TestQuantities:
    def test_unknown_pair_reads_as_zero(self, store, product):
        assert stock_service.get_quantity(product.id, store.id) == 0
        assert stock_service.get_stock(product.id, store.id) is None

    def test_first_delta_creates_row(self, store, product):
        change = stock_service.apply_delta(product.id, store.id, 12, actor_id=3)
        db.session.commit()

        assert (change.previous, change.current) == (0, 12)
        row = stock_service.get_stock(product.id, store.id)
        assert row.quantity == 12
        assert row.updated_by == 3

    def test_delta_is_added_to_existing_quantity(self, store, product):
        stock_service.apply_delta(product.id, store.id, 10, actor_id=1)
        db.session.commit()

        change = stock_service.apply_delta(product.id, store.id, -4, actor_id=2)
        db.session.commit()

        assert change.applied_delta == -4
        assert stock_service.get_quantity(product.id, store.id) == 6

    def test_decrement_clamps_at_zero(self, store, product, caplog):
        stock_service.apply_delta(product.id, store.id, 3, actor_id=1)
        db.session.commit()

        with caplog.at_level(logging.WARNING, logger="stockledger"):
            change = stock_service.apply_delta(product.id, store.id, -10, actor_id=1)
            db.session.commit()

        assert change.current == 0
        assert change.applied_delta == -3
        assert stock_service.get_quantity(product.id, store.id) == 0
        assert "clamped" in caplog.text

    def test_non_integer_delta_rejected(self, store, product):
        with pytest.raises(ValidationError):
            stock_service.apply_delta(product.id, store.id, 1.5, actor_id=1)


class TestSetExact:
    def test_upserts_missing_row(self, store, product):
        change = stock_service.set_exact(product.id, store.id, 9, actor_id=1)
        db.session.commit()

        assert (change.previous, change.current) == (0, 9)
        assert stock_service.get_quantity(product.id, store.id) == 9

    def test_overwrites_without_expected_quantity(self, store, product):
        stock_service.set_exact(product.id, store.id, 9, actor_id=1)
        db.session.commit()

        change = stock_service.set_exact(product.id, store.id, 2, actor_id=1)
        db.session.commit()

        assert change.previous == 9
        assert stock_service.get_quantity(product.id, store.id) == 2

    def test_compare_and_swap_refuses_stale_expectation(self, store, product):
        stock_service.set_exact(product.id, store.id, 9, actor_id=1)
        db.session.commit()

        with pytest.raises(ConflictError) as exc_info:
            stock_service.set_exact(product.id, store.id, 20, actor_id=1, expected_quantity=5)
        db.session.rollback()

        assert exc_info.value.details["actual_quantity"] == 9
        assert stock_service.get_quantity(product.id, store.id) == 9

    def test_missing_row_counts_as_zero_for_expectation(self, store, product):
        with pytest.raises(ConflictError):
            stock_service.set_exact(product.id, store.id, 4, actor_id=1, expected_quantity=3)
        db.session.rollback()

        change = stock_service.set_exact(product.id, store.id, 4, actor_id=1, expected_quantity=0)
        db.session.commit()
        assert change.current == 4

    def test_negative_quantity_rejected(self, store, product):
        with pytest.raises(ValidationError):
            stock_service.set_exact(product.id, store.id, -1, actor_id=1)


class TestListStock:
    def test_low_stock_filter_uses_min_stock_level(self, store, make_product):
        low = make_product(min_stock_level=5)
        healthy = make_product(min_stock_level=5)
        stock_service.set_exact(low.id, store.id, 5, actor_id=1)
        stock_service.set_exact(healthy.id, store.id, 30, actor_id=1)
        db.session.commit()

        rows = stock_service.list_stock(store_id=store.id, low_stock=True)
        assert [row.product_id for row in rows] == [low.id]

        all_rows = stock_service.list_stock(store_id=store.id)
        assert {row.product_id for row in all_rows} == {low.id, healthy.id}
