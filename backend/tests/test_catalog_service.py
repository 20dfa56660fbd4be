# Overview: Pytest coverage for the store/product catalog and its deletion guards.

import pytest

from stockledger.errors import ConflictError, NotFoundError, ValidationError
from stockledger.models import Product, Store
from stockledger.extensions import db
from stockledger.services import catalog_service, return_service, sales_service, stock_service

from conftest import ACTOR_ID


class TestStores:
    def test_create_and_update(self, app):
        store = catalog_service.create_store({"name": "Depot", "location": "Dock 3", "ignored": "x"})
        assert store.is_active is True

        updated = catalog_service.update_store(store.id, {"phone": "555-0101", "is_active": False})
        assert updated.phone == "555-0101"
        assert updated.is_active is False
        assert catalog_service.list_stores(active_only=True) == []

    def test_duplicate_name_conflicts(self, store):
        with pytest.raises(ConflictError):
            catalog_service.create_store({"name": store.name})

    def test_name_required(self, app):
        with pytest.raises(ValidationError):
            catalog_service.create_store({"location": "nowhere"})

    def test_delete_empty_store(self, app):
        store = catalog_service.create_store({"name": "Pop-up"})
        store_id = store.id

        catalog_service.delete_store(store_id)

        assert catalog_service.get_store(store_id) is None

    def test_store_with_stock_cannot_be_deleted(self, store, product, seed_stock):
        seed_stock(product, store, 1)
        with pytest.raises(ConflictError):
            catalog_service.delete_store(store.id)
        assert db.session.query(Store).count() == 1

    def test_store_with_history_cannot_be_deleted(self, store, product, seed_stock):
        seed_stock(product, store, 2)
        sales_service.commit_sale(
            store.id, [{"product_id": product.id, "quantity": 2, "unit_price_cents": 100}], ACTOR_ID
        )
        assert stock_service.get_quantity(product.id, store.id) == 0

        with pytest.raises(ConflictError):
            catalog_service.delete_store(store.id)

    def test_unknown_store(self, app):
        with pytest.raises(NotFoundError):
            catalog_service.delete_store(404)


class TestProducts:
    def test_create_and_search(self, app):
        catalog_service.create_product(
            {"sku": "TEA-001", "name": "Green Tea", "cost_price_cents": "120"}, actor_id=ACTOR_ID
        )
        catalog_service.create_product({"sku": "COF-001", "name": "Coffee"}, actor_id=ACTOR_ID)

        [tea] = catalog_service.list_products(search="tea")
        assert tea.cost_price_cents == 120
        assert tea.created_by == ACTOR_ID

    def test_duplicate_sku_conflicts(self, product):
        with pytest.raises(ConflictError):
            catalog_service.create_product({"sku": product.sku, "name": "Copy"})

    def test_price_must_be_integer_cents(self, app):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"sku": "X-1", "name": "X", "selling_price_cents": "9.99"})

    def test_update_bumps_version(self, product):
        version = product.version_id
        updated = catalog_service.update_product(product.id, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert updated.version_id == version + 1

    def test_delete_unused_product(self, product):
        product_id = product.id
        catalog_service.delete_product(product_id)
        assert db.session.get(Product, product_id) is None

    def test_product_with_stock_cannot_be_deleted(self, store, product, seed_stock):
        seed_stock(product, store, 3)
        with pytest.raises(ConflictError):
            catalog_service.delete_product(product.id)

    def test_product_on_pending_return_cannot_be_deleted(self, store, product):
        return_service.create_return(
            store.id,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100, "condition": "GOOD"}],
            ACTOR_ID,
        )
        with pytest.raises(ConflictError):
            catalog_service.delete_product(product.id)
