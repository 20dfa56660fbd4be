# Overview: Stock Store; current on-hand quantity per (product, store).

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Product, Stock
from stockledger.time_utils import utcnow
from .concurrency import lock_for_update
"""
Stock Store rules:

- get_quantity never fails for an unknown pair; it answers 0.
- apply_delta is atomic per row: the row is locked and the new value is
  written as one SQL expression, clamped at zero.
- set_exact is an upsert to an explicit value; with expected_quantity it is a
  compare-and-swap that refuses to overwrite a concurrent change.
- These functions never commit. They run inside the caller's transaction
  (see concurrency.run_with_retry), so a later failure rolls them back too.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockChange:
    product_id: int
    store_id: int
    previous: int
    current: int

    @property
    def applied_delta(self) -> int:
        return self.current - self.previous


def _stock_query(product_id: int, store_id: int):
    return db.session.query(Stock).filter_by(product_id=product_id, store_id=store_id)


def get_stock(product_id: int, store_id: int) -> Stock | None:
    return _stock_query(product_id, store_id).first()


def get_quantity(product_id: int, store_id: int) -> int:
    qty = (
        db.session.query(Stock.quantity)
        .filter_by(product_id=product_id, store_id=store_id)
        .scalar()
    )
    return int(qty or 0)


def _insert_stock_row(product_id: int, store_id: int, quantity: int, actor_id: int | None) -> Stock | None:
    """
    Create the row for a pair on its first movement.

    Returns None if a concurrent transaction created it first; the caller then
    falls back to the update path.
    """
    row = Stock(
        product_id=product_id,
        store_id=store_id,
        quantity=quantity,
        reserved_quantity=0,
        last_updated=utcnow(),
        updated_by=actor_id,
    )
    savepoint = db.session.begin_nested()
    try:
        db.session.add(row)
        db.session.flush()
    except IntegrityError:
        savepoint.rollback()
        return None
    savepoint.commit()
    return row


def apply_delta(product_id: int, store_id: int, delta: int, actor_id: int | None) -> StockChange:
    """
    Add a signed delta to the on-hand quantity.

    Decrements larger than the current quantity clamp to 0 instead of failing.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")

    row = lock_for_update(_stock_query(product_id, store_id)).first()
    if row is None:
        created = _insert_stock_row(product_id, store_id, max(0, delta), actor_id)
        if created is not None:
            change = StockChange(product_id, store_id, 0, created.quantity)
            _log_clamp(change, delta)
            return change
        row = lock_for_update(_stock_query(product_id, store_id)).first()

    previous = int(row.quantity)
    row.quantity = case(
        (Stock.quantity + delta < 0, 0),
        else_=Stock.quantity + delta,
    )
    row.last_updated = utcnow()
    row.updated_by = actor_id
    db.session.flush()
    # quantity was written as an expression, so it is expired and reloads here
    change = StockChange(product_id, store_id, previous, int(row.quantity))
    _log_clamp(change, delta)
    return change


def _log_clamp(change: StockChange, requested: int) -> None:
    if change.applied_delta != requested:
        logger.warning(
            "Decrement clamped at zero for product %s in store %s: requested %d, applied %d",
            change.product_id,
            change.store_id,
            requested,
            change.applied_delta,
        )


def set_exact(
    product_id: int,
    store_id: int,
    new_quantity: int,
    actor_id: int | None,
    *,
    expected_quantity: int | None = None,
) -> StockChange:
    """
    Upsert the pair to an explicit quantity.

    When expected_quantity is given the write only happens if the stored
    quantity still equals it (a missing row counts as 0); otherwise
    ConflictError is raised and nothing is written.
    """
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
        raise ValidationError("new_quantity must be a non-negative integer")

    row = lock_for_update(_stock_query(product_id, store_id)).first()
    if row is None:
        if expected_quantity not in (None, 0):
            raise _stale_quantity(product_id, store_id, expected_quantity, 0)
        created = _insert_stock_row(product_id, store_id, new_quantity, actor_id)
        if created is not None:
            return StockChange(product_id, store_id, 0, new_quantity)
        row = lock_for_update(_stock_query(product_id, store_id)).first()

    previous = int(row.quantity)
    stmt = (
        update(Stock)
        .where(Stock.id == row.id)
        .values(quantity=new_quantity, last_updated=utcnow(), updated_by=actor_id)
        .execution_options(synchronize_session="fetch")
    )
    if expected_quantity is not None:
        stmt = stmt.where(Stock.quantity == expected_quantity)

    result = db.session.execute(stmt)
    if result.rowcount == 0:
        db.session.refresh(row)
        raise _stale_quantity(product_id, store_id, expected_quantity, int(row.quantity))

    return StockChange(product_id, store_id, previous, new_quantity)


def _stale_quantity(product_id: int, store_id: int, expected: int | None, actual: int) -> ConflictError:
    return ConflictError(
        "Stock quantity changed since it was read; reload and retry",
        details={
            "product_id": product_id,
            "store_id": store_id,
            "expected_quantity": expected,
            "actual_quantity": actual,
        },
    )


def list_stock(
    *,
    store_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
    limit: int = 500,
) -> list[Stock]:
    """List stock rows; low_stock keeps rows at or under the product's min_stock_level."""
    q = db.session.query(Stock)
    if store_id is not None:
        q = q.filter(Stock.store_id == store_id)
    if product_id is not None:
        q = q.filter(Stock.product_id == product_id)
    if low_stock:
        q = q.join(Product, Product.id == Stock.product_id).filter(
            Stock.quantity <= Product.min_stock_level
        )
    return q.order_by(Stock.store_id.asc(), Stock.product_id.asc()).limit(limit).all()
