from __future__ import annotations

from ..extensions import db
from ..enums import (
    AdjustmentReason,
    AdjustmentStatus,
    AdjustmentType,
    RefundMethod,
    ReturnItemCondition,
    ReturnStatus,
    ReturnType,
)
from ._types import enum_column_type
from stockledger.time_utils import to_iso_date, to_utc_z


class Return(db.Model):
    """
    Product return document.

    LIFECYCLE:
    1. PENDING: created, no stock effect yet
    2. APPROVED: GOOD items restocked, DAMAGED/DEFECTIVE items tracked only
    3. REJECTED: closed without stock effect
    4. COMPLETED: refund settled after approval (no further stock effect)

    Only PENDING and REJECTED returns may be deleted.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(64), nullable=False, unique=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    return_date = db.Column(db.Date, nullable=False)
    return_type = db.Column(enum_column_type(ReturnType, 16), nullable=False, default=ReturnType.CUSTOMER)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_method = db.Column(enum_column_type(RefundMethod, 16), nullable=True, default=RefundMethod.CASH)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(enum_column_type(ReturnStatus, 16), nullable=False, default=ReturnStatus.PENDING, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    store = db.relationship("Store", backref=db.backref("returns", lazy=True))
    items = db.relationship(
        "ReturnItem",
        back_populates="return_doc",
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "sale_id": self.sale_id,
            "store_id": self.store_id,
            "return_date": to_iso_date(self.return_date),
            "return_type": self.return_type.value,
            "total_amount_cents": self.total_amount_cents,
            "refund_amount_cents": self.refund_amount_cents,
            "refund_method": self.refund_method.value if self.refund_method else None,
            "reason": self.reason,
            "status": self.status.value,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """Returned product line; condition decides whether it goes back on the shelf."""
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    condition = db.Column(
        enum_column_type(ReturnItemCondition, 16),
        nullable=False,
        default=ReturnItemCondition.GOOD,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    return_doc = db.relationship("Return", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "condition": self.condition.value,
            "created_at": to_utc_z(self.created_at),
        }


class StockAdjustment(db.Model):
    """
    Manual stock correction document.

    adjustment_type is derived from the sign of new - old, never chosen.
    Under the default policy the creator is also the approver.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_adjustments_store_date", "store_id", "adjustment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    adjustment_number = db.Column(db.String(64), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    adjustment_date = db.Column(db.Date, nullable=False)
    adjustment_type = db.Column(enum_column_type(AdjustmentType, 16), nullable=False, index=True)
    reason = db.Column(enum_column_type(AdjustmentReason, 32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(
        enum_column_type(AdjustmentStatus, 16),
        nullable=False,
        default=AdjustmentStatus.APPROVED,
        index=True,
    )

    total_value_impact_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, nullable=True)
    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("stock_adjustments", lazy=True))
    items = db.relationship(
        "StockAdjustmentItem",
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "adjustment_number": self.adjustment_number,
            "store_id": self.store_id,
            "adjustment_date": to_iso_date(self.adjustment_date),
            "adjustment_type": self.adjustment_type.value,
            "reason": self.reason.value if self.reason else None,
            "notes": self.notes,
            "status": self.status.value,
            "total_value_impact_cents": self.total_value_impact_cents,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockAdjustmentItem(db.Model):
    __tablename__ = "stock_adjustment_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    old_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    quantity_difference = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    value_impact_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    adjustment = db.relationship("StockAdjustment", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_id": self.adjustment_id,
            "product_id": self.product_id,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
            "quantity_difference": self.quantity_difference,
            "unit_cost_cents": self.unit_cost_cents,
            "value_impact_cents": self.value_impact_cents,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-store document sequences.

    Used for invoice, return and adjustment numbers.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("document_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
