from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..enums import InventoryState, MovementType, ReferenceType
from ._types import enum_column_type
from stockledger.time_utils import to_utc_z
"""
Stock Ledger Invariants (authoritative)

- Stock holds the current on-hand quantity per (product, store); it is the
  fast read path and is written only through stock_service.
- StockMovement is append-only: rows are inserted, never updated or deleted.
- For every (product, store): Stock.quantity == SUM(StockMovement.quantity_delta).
- quantity is the unsigned magnitude of the business event; quantity_delta is
  the signed change actually applied to sellable stock (clamped decrements
  record the applied amount, non-sellable tracking rows record 0).
"""


class Stock(db.Model):
    __tablename__ = "stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "store_id", name="uq_stock_product_store"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_by = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product", backref=db.backref("stock", lazy=True))
    store = db.relationship("Store", backref=db.backref("stock", lazy=True))

    @property
    def available_quantity(self) -> int:
        return max(0, (self.quantity or 0) - (self.reserved_quantity or 0))

    def __repr__(self) -> str:
        return f"<Stock product_id={self.product_id} store_id={self.store_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
            "last_updated": to_utc_z(self.last_updated),
            "updated_by": self.updated_by,
        }


class StockMovement(db.Model):
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_product_store_created", "product_id", "store_id", "created_at"),
        db.Index("ix_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    movement_type = db.Column(enum_column_type(MovementType, 16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)

    inventory_state = db.Column(
        enum_column_type(InventoryState, 16),
        nullable=False,
        default=InventoryState.SELLABLE,
    )

    # Polymorphic reference (sale, return, adjustment, ...); no FK so history
    # survives deletion of the causing record.
    reference_type = db.Column(enum_column_type(ReferenceType, 16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "movement_type": self.movement_type.value,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "inventory_state": self.inventory_state.value,
            "reference_type": self.reference_type.value if self.reference_type else None,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise RuntimeError(f"stock movement {target.id} is append-only and cannot be updated")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise RuntimeError(f"stock movement {target.id} is append-only and cannot be deleted")
