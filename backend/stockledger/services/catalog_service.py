# Overview: Minimal store/product catalog the stock ledger depends on.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    DocumentSequence,
    Product,
    Return,
    ReturnItem,
    Sale,
    SaleItem,
    Stock,
    StockAdjustment,
    StockAdjustmentItem,
    StockMovement,
    Store,
)
from ..validation import optional_int, optional_str
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

STORE_FIELDS = ("name", "location", "phone", "email", "manager_id", "is_active")
PRODUCT_FIELDS = (
    "sku",
    "name",
    "description",
    "barcode",
    "unit_of_measure",
    "cost_price_cents",
    "selling_price_cents",
    "min_stock_level",
    "max_stock_level",
    "reorder_point",
    "is_active",
)
_PRODUCT_INT_FIELDS = {
    "cost_price_cents",
    "selling_price_cents",
    "min_stock_level",
    "max_stock_level",
    "reorder_point",
}


def require_store(store_id: int, *, lock: bool = False) -> Store:
    query = db.session.query(Store).filter_by(id=store_id)
    if lock:
        query = lock_for_update(query)
    store = query.first()
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def require_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _clean_store_fields(data: dict) -> dict:
    clean = {}
    for key in STORE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key == "manager_id":
            clean[key] = optional_int(value, key, minimum=1)
        elif key == "is_active":
            clean[key] = bool(value)
        else:
            clean[key] = optional_str(value, key, max_length=255)
    return clean


def _clean_product_fields(data: dict) -> dict:
    clean = {}
    for key in PRODUCT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in _PRODUCT_INT_FIELDS:
            default = None if key == "max_stock_level" else 0
            clean[key] = optional_int(value, key, minimum=0, default=default)
        elif key == "is_active":
            clean[key] = bool(value)
        else:
            clean[key] = optional_str(value, key, max_length=None if key == "description" else 255)
    return clean


def create_store(data: dict) -> Store:
    fields = _clean_store_fields(data)
    if not fields.get("name"):
        raise ValidationError("Store name is required")

    def _op():
        store = Store(**fields)
        db.session.add(store)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"Store name {fields['name']!r} already exists")
        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store(store_id: int, data: dict) -> Store:
    fields = _clean_store_fields(data)
    if "name" in fields and not fields["name"]:
        raise ValidationError("Store name cannot be empty")

    def _op():
        store = require_store(store_id, lock=True)
        for key, value in fields.items():
            setattr(store, key, value)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"Store name {fields.get('name')!r} already exists")
        db.session.commit()
        return store

    return run_with_retry(_op)


def delete_store(store_id: int) -> None:
    """Delete a store that holds no stock; otherwise it should be deactivated."""
    def _op():
        store = require_store(store_id, lock=True)
        has_stock = (
            db.session.query(Stock.id)
            .filter(Stock.store_id == store_id, Stock.quantity > 0)
            .first()
        )
        if has_stock:
            raise ConflictError("Cannot delete store with existing stock. Consider deactivating instead.")
        has_history = db.session.query(StockMovement.id).filter_by(store_id=store_id).first()
        if has_history:
            raise ConflictError("Cannot delete store with stock movement history. Consider deactivating instead.")
        has_documents = any(
            db.session.query(model.id).filter_by(store_id=store_id).first()
            for model in (Sale, Return, StockAdjustment)
        )
        if has_documents:
            raise ConflictError("Cannot delete store with sales, returns or adjustments. Consider deactivating instead.")

        db.session.query(Stock).filter_by(store_id=store_id).delete(synchronize_session=False)
        db.session.query(DocumentSequence).filter_by(store_id=store_id).delete(synchronize_session=False)
        db.session.delete(store)
        db.session.commit()
        logger.info("Deleted store %s", store_id)

    run_with_retry(_op)


def get_store(store_id: int) -> Store | None:
    return db.session.query(Store).filter_by(id=store_id).first()


def list_stores(*, active_only: bool = False) -> list[Store]:
    q = db.session.query(Store)
    if active_only:
        q = q.filter(Store.is_active.is_(True))
    return q.order_by(Store.name.asc()).all()


def create_product(data: dict, actor_id: int | None = None) -> Product:
    fields = _clean_product_fields(data)
    if not fields.get("sku") or not fields.get("name"):
        raise ValidationError("Product sku and name are required")

    def _op():
        product = Product(created_by=actor_id, **fields)
        db.session.add(product)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"SKU {fields['sku']!r} already exists")
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, data: dict) -> Product:
    fields = _clean_product_fields(data)
    for key in ("sku", "name"):
        if key in fields and not fields[key]:
            raise ValidationError(f"Product {key} cannot be empty")

    def _op():
        product = require_product(product_id)
        for key, value in fields.items():
            setattr(product, key, value)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"SKU {fields.get('sku')!r} already exists")
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """Delete a product that has neither stock nor movement history."""
    def _op():
        product = require_product(product_id)
        has_stock = (
            db.session.query(Stock.id)
            .filter(Stock.product_id == product_id, Stock.quantity > 0)
            .first()
        )
        if has_stock:
            raise ConflictError("Cannot delete product with existing stock. Consider deactivating instead.")
        has_history = db.session.query(StockMovement.id).filter_by(product_id=product_id).first()
        if has_history:
            raise ConflictError("Cannot delete product with transaction history. Consider deactivating instead.")
        has_documents = any(
            db.session.query(model.id).filter_by(product_id=product_id).first()
            for model in (SaleItem, ReturnItem, StockAdjustmentItem)
        )
        if has_documents:
            raise ConflictError("Cannot delete product referenced by sales, returns or adjustments. Consider deactivating instead.")

        db.session.query(Stock).filter_by(product_id=product_id).delete(synchronize_session=False)
        db.session.delete(product)
        db.session.commit()
        logger.info("Deleted product %s", product_id)

    run_with_retry(_op)


def get_product(product_id: int) -> Product | None:
    return db.session.query(Product).filter_by(id=product_id).first()


def list_products(*, search: str | None = None, active_only: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(Product.name.ilike(pattern) | Product.sku.ilike(pattern))
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc()).all()
