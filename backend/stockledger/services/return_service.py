# Overview: Return Settlement; return documents and their stock effect on approval.

from __future__ import annotations

import logging
from datetime import date

from ..enums import MovementType, ReferenceType, RefundMethod, ReturnItemCondition, ReturnStatus, ReturnType
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Return, ReturnItem, Sale
from ..validation import (
    coerce_date,
    coerce_enum,
    optional_int,
    optional_str,
    require_amount_cents,
    require_int,
    require_items,
)
from stockledger.time_utils import utcnow
from . import ledger_service
from .catalog_service import require_product, require_store
from .concurrency import lock_for_update, run_with_retry
from .document_service import RETURN_PREFIX, next_document_number
"""
Return Settlement rules:

- PENDING -> APPROVED | REJECTED; APPROVED -> COMPLETED (refund settled).
- Stock moves exactly once per return, when it becomes APPROVED (or is
  created directly as APPROVED/COMPLETED):
    GOOD items:              +quantity on stock, IN/RETURN movement
    DAMAGED/DEFECTIVE items: no stock change, OUT/RETURN tracking movement
                             with inventory_state = condition, delta 0
- REJECTED and COMPLETED transitions never touch stock.
- APPROVED and COMPLETED returns cannot be deleted.
"""

logger = logging.getLogger(__name__)

RETURN_ITEM_FIELDS = ("product_id", "quantity", "unit_price_cents", "condition")
_STOCK_SETTLED = (ReturnStatus.APPROVED, ReturnStatus.COMPLETED)
_UNDELETABLE = _STOCK_SETTLED


def _normalize_items(items) -> list[dict]:
    items = require_items(
        items,
        RETURN_ITEM_FIELDS,
        "Each item must have product_id, quantity, unit_price_cents, and condition",
    )
    normalized = []
    for item in items:
        quantity = require_int(item["quantity"], "quantity", minimum=1)
        unit_price_cents = require_amount_cents(item["unit_price_cents"], "unit_price_cents")
        normalized.append({
            "product_id": require_int(item["product_id"], "product_id", minimum=1),
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
            "total_price_cents": quantity * unit_price_cents,
            "condition": coerce_enum(ReturnItemCondition, item["condition"], "condition"),
        })
    return normalized


def _apply_return_stock(return_doc: Return, actor_id: int) -> None:
    for item in return_doc.items:
        if item.condition.is_sellable:
            ledger_service.post_movement(
                product_id=item.product_id,
                store_id=return_doc.store_id,
                movement_type=MovementType.IN,
                quantity=item.quantity,
                reference_type=ReferenceType.RETURN,
                reference_id=return_doc.id,
                actor_id=actor_id,
                notes=f"Return approved - {item.condition.value}",
            )
        else:
            # Tracked for reporting; never back on the shelf
            ledger_service.append_movement(
                product_id=item.product_id,
                store_id=return_doc.store_id,
                movement_type=MovementType.OUT,
                quantity=item.quantity,
                inventory_state=item.condition.inventory_state,
                reference_type=ReferenceType.RETURN,
                reference_id=return_doc.id,
                actor_id=actor_id,
                notes=f"Return approved - {item.condition.value}",
            )


def _mark_decided(return_doc: Return, status: ReturnStatus, actor_id: int) -> None:
    return_doc.status = status
    return_doc.approved_by = actor_id
    return_doc.approved_at = utcnow()


def create_return(
    store_id: int,
    items,
    actor_id: int,
    *,
    sale_id: int | None = None,
    status: ReturnStatus | str | None = ReturnStatus.PENDING,
    return_date: date | str | None = None,
    return_type: ReturnType | str | None = ReturnType.CUSTOMER,
    refund_method: RefundMethod | str | None = RefundMethod.CASH,
    refund_amount_cents: int | None = None,
    reason: str | None = None,
) -> Return:
    """
    Create a return document.

    refund_amount defaults to the total of the items. A return created as
    APPROVED or COMPLETED settles its stock effect in the same transaction.

    Raises:
        ValidationError: missing store/items or malformed item
        NotFoundError: unknown store, product or sale
    """
    if store_id is None:
        raise ValidationError("Missing required fields: store_id, items")
    store_id = require_int(store_id, "store_id", minimum=1)
    sale_id = optional_int(sale_id, "sale_id", minimum=1)
    normalized = _normalize_items(items)

    status = coerce_enum(ReturnStatus, status, "status", default=ReturnStatus.PENDING)
    return_type = coerce_enum(ReturnType, return_type, "return_type", default=ReturnType.CUSTOMER)
    refund_method = coerce_enum(RefundMethod, refund_method, "refund_method", default=RefundMethod.CASH)
    return_date = coerce_date(return_date, "return_date")

    total_amount_cents = sum(item["total_price_cents"] for item in normalized)
    refund_amount_cents = optional_int(
        refund_amount_cents, "refund_amount_cents", default=total_amount_cents, minimum=0
    )
    if refund_amount_cents > total_amount_cents:
        raise ValidationError("refund_amount_cents cannot exceed the return total")

    def _op():
        require_store(store_id)
        if sale_id is not None:
            sale = db.session.query(Sale).filter_by(id=sale_id).first()
            if sale is None:
                raise NotFoundError("Sale not found")
            if sale.store_id != store_id:
                raise ValidationError("Sale belongs to a different store")
        for item in normalized:
            require_product(item["product_id"])

        return_doc = Return(
            return_number=next_document_number(
                store_id=store_id, document_type="RETURN", prefix=RETURN_PREFIX
            ),
            sale_id=sale_id,
            store_id=store_id,
            return_date=return_date,
            return_type=return_type,
            total_amount_cents=total_amount_cents,
            refund_amount_cents=refund_amount_cents,
            refund_method=refund_method,
            reason=reason,
            status=ReturnStatus.PENDING,
            created_by=actor_id,
        )
        db.session.add(return_doc)
        db.session.flush()

        for item in normalized:
            return_doc.items.append(ReturnItem(**item))

        if status is not ReturnStatus.PENDING:
            _mark_decided(return_doc, status, actor_id)
        db.session.flush()

        if status in _STOCK_SETTLED:
            _apply_return_stock(return_doc, actor_id)

        db.session.commit()
        logger.info(
            "Created return %s (%s) in store %s with status %s",
            return_doc.id,
            return_doc.return_number,
            store_id,
            status.value,
        )
        return return_doc

    return run_with_retry(_op)


def _locked_return(return_id: int) -> Return:
    return_doc = lock_for_update(db.session.query(Return).filter_by(id=return_id)).first()
    if return_doc is None:
        raise NotFoundError("Return not found")
    return return_doc


def _clean_edits(refund_method, refund_amount_cents, reason) -> dict:
    edits = {}
    if refund_method is not None:
        edits["refund_method"] = coerce_enum(RefundMethod, refund_method, "refund_method")
    if refund_amount_cents is not None:
        edits["refund_amount_cents"] = require_int(refund_amount_cents, "refund_amount_cents", minimum=0)
    if reason is not None:
        edits["reason"] = optional_str(reason, "reason")
    return edits


def _apply_edits(return_doc: Return, edits: dict) -> None:
    if return_doc.status is ReturnStatus.COMPLETED:
        raise ConflictError("Completed returns cannot be edited")
    refund_amount_cents = edits.get("refund_amount_cents")
    if refund_amount_cents is not None and refund_amount_cents > return_doc.total_amount_cents:
        raise ValidationError("refund_amount_cents cannot exceed the return total")
    for key, value in edits.items():
        setattr(return_doc, key, value)


def settle_return(
    return_id: int,
    status: ReturnStatus | str,
    actor_id: int,
    *,
    refund_method: RefundMethod | str | None = None,
    refund_amount_cents: int | None = None,
    reason: str | None = None,
) -> Return:
    """
    Approve or reject a PENDING return, optionally editing its refund details.

    Edits are checked before any stock moves and commit together with the
    settlement. Settling to the status the return already has only applies
    the edits. Any other transition out of APPROVED, REJECTED or COMPLETED
    raises ConflictError.
    """
    if status is None:
        raise ValidationError("status is required")
    status = coerce_enum(ReturnStatus, status, "status")
    if status not in (ReturnStatus.APPROVED, ReturnStatus.REJECTED):
        raise ValidationError("status must be APPROVED or REJECTED")
    edits = _clean_edits(refund_method, refund_amount_cents, reason)

    def _op():
        return_doc = _locked_return(return_id)
        if return_doc.status is status:
            if not edits:
                db.session.rollback()
                return return_doc
            _apply_edits(return_doc, edits)
            db.session.commit()
            return return_doc
        # Settled returns stay settled: an APPROVED return has already restocked
        if return_doc.status is not ReturnStatus.PENDING:
            raise ConflictError(
                f"Cannot change a {return_doc.status.value} return to {status.value}",
                details={"return_id": return_id, "status": return_doc.status.value},
            )

        _apply_edits(return_doc, edits)
        _mark_decided(return_doc, status, actor_id)
        db.session.flush()
        if status is ReturnStatus.APPROVED:
            _apply_return_stock(return_doc, actor_id)

        db.session.commit()
        logger.info("Return %s settled as %s by %s", return_id, status.value, actor_id)
        return return_doc

    return run_with_retry(_op)


def complete_return(return_id: int, actor_id: int) -> Return:
    """Mark an APPROVED return's refund as settled. Stock is not touched."""
    def _op():
        return_doc = _locked_return(return_id)
        if return_doc.status is ReturnStatus.COMPLETED:
            db.session.rollback()
            return return_doc
        if return_doc.status is not ReturnStatus.APPROVED:
            raise ConflictError(
                "Only approved returns can be completed",
                details={"return_id": return_id, "status": return_doc.status.value},
            )
        return_doc.status = ReturnStatus.COMPLETED
        db.session.commit()
        logger.info("Return %s completed by %s", return_id, actor_id)
        return return_doc

    return run_with_retry(_op)


def update_return(
    return_id: int,
    *,
    refund_method: RefundMethod | str | None = None,
    refund_amount_cents: int | None = None,
    reason: str | None = None,
) -> Return:
    """Edit refund details; COMPLETED returns are closed for edits."""
    edits = _clean_edits(refund_method, refund_amount_cents, reason)

    def _op():
        return_doc = _locked_return(return_id)
        _apply_edits(return_doc, edits)
        db.session.commit()
        return return_doc

    return run_with_retry(_op)


def delete_return(return_id: int) -> None:
    def _op():
        return_doc = _locked_return(return_id)
        if return_doc.status in _UNDELETABLE:
            raise ConflictError("Cannot delete approved or completed returns")
        return_number = return_doc.return_number
        db.session.delete(return_doc)
        db.session.commit()
        logger.info("Deleted return %s (%s)", return_id, return_number)

    run_with_retry(_op)


def get_return(return_id: int) -> Return | None:
    return db.session.query(Return).filter_by(id=return_id).first()


def list_returns(
    *,
    store_id: int | None = None,
    status: ReturnStatus | str | None = None,
    sale_id: int | None = None,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Return], int]:
    q = db.session.query(Return)
    if store_id is not None:
        q = q.filter(Return.store_id == store_id)
    if status is not None:
        q = q.filter(Return.status == coerce_enum(ReturnStatus, status, "status"))
    if sale_id is not None:
        q = q.filter(Return.sale_id == sale_id)
    if start_date:
        q = q.filter(Return.return_date >= coerce_date(start_date, "start_date"))
    if end_date:
        q = q.filter(Return.return_date <= coerce_date(end_date, "end_date"))

    total = q.count()
    page = max(1, page)
    limit = min(max(1, limit), 100)
    returns = (
        q.order_by(Return.created_at.desc(), Return.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return returns, total
