# Overview: Stock Adjustment; absolute corrections with a compare-and-swap on the asserted quantity.

from __future__ import annotations

import logging
from datetime import date

from flask import current_app

from ..enums import AdjustmentReason, AdjustmentStatus, AdjustmentType, MovementType, ReferenceType
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import StockAdjustment, StockAdjustmentItem
from ..validation import coerce_date, coerce_enum, optional_str, require_int
from stockledger.time_utils import utcnow
from . import ledger_service, stock_service
from .catalog_service import require_product, require_store
from .concurrency import lock_for_update, run_with_retry
from .document_service import ADJUSTMENT_PREFIX, next_document_number

logger = logging.getLogger(__name__)


class AutoApprovePolicy:
    """Creator is the approver; stock is posted in the creating transaction."""

    name = "auto"

    def initial_status(self) -> AdjustmentStatus:
        return AdjustmentStatus.APPROVED

    def approver_for(self, actor_id: int) -> int | None:
        return actor_id


class ManualApprovalPolicy:
    """Adjustments wait as PENDING until approve_adjustment is called."""

    name = "manual"

    def initial_status(self) -> AdjustmentStatus:
        return AdjustmentStatus.PENDING

    def approver_for(self, actor_id: int) -> int | None:
        return None


APPROVAL_POLICIES = {
    AutoApprovePolicy.name: AutoApprovePolicy,
    ManualApprovalPolicy.name: ManualApprovalPolicy,
}


def get_approval_policy():
    name = str(current_app.config.get("ADJUSTMENT_APPROVAL_POLICY", "auto")).strip().lower()
    try:
        return APPROVAL_POLICIES[name]()
    except KeyError:
        raise ValidationError(f"Unknown adjustment approval policy: {name}")


def _post_adjustment(adjustment: StockAdjustment, actor_id: int) -> None:
    """
    Write the adjusted quantity and its movement.

    set_exact only succeeds while the stored quantity still equals the
    old_quantity the caller asserted; otherwise ConflictError aborts the
    whole adjustment.
    """
    for item in adjustment.items:
        stock_service.set_exact(
            item.product_id,
            adjustment.store_id,
            item.new_quantity,
            actor_id,
            expected_quantity=item.old_quantity,
        )
        difference = item.quantity_difference
        if difference == 0:
            continue
        reason = adjustment.reason.value if adjustment.reason else "unspecified"
        ledger_service.append_movement(
            product_id=item.product_id,
            store_id=adjustment.store_id,
            movement_type=MovementType.IN if difference > 0 else MovementType.OUT,
            quantity=abs(difference),
            quantity_delta=difference,
            reference_type=ReferenceType.ADJUSTMENT,
            reference_id=adjustment.id,
            actor_id=actor_id,
            notes=f"Stock adjustment: {reason}",
        )


def apply_adjustment(
    product_id: int,
    store_id: int,
    old_quantity: int,
    new_quantity: int,
    actor_id: int,
    reason: AdjustmentReason | str | None = None,
    notes: str | None = None,
    *,
    adjustment_date: date | str | None = None,
) -> StockAdjustment:
    """
    Correct the quantity of one product in one store.

    adjustment_type comes from the sign of new - old and value impact is
    (new - old) x product cost price, negative for decreases.

    Raises:
        ValidationError: malformed quantities or reason
        NotFoundError: unknown product or store
        ConflictError: stock no longer equals old_quantity
    """
    if product_id is None or store_id is None or old_quantity is None or new_quantity is None:
        raise ValidationError(
            "Missing required fields: product_id, store_id, old_quantity, new_quantity"
        )
    product_id = require_int(product_id, "product_id", minimum=1)
    store_id = require_int(store_id, "store_id", minimum=1)
    old_quantity = require_int(old_quantity, "old_quantity", minimum=0)
    new_quantity = require_int(new_quantity, "new_quantity", minimum=0)
    reason = coerce_enum(AdjustmentReason, reason, "reason")
    adjustment_date = coerce_date(adjustment_date, "adjustment_date")
    notes = optional_str(notes, "notes")
    policy = get_approval_policy()

    difference = new_quantity - old_quantity

    def _op():
        require_store(store_id)
        product = require_product(product_id)
        unit_cost_cents = int(product.cost_price_cents or 0)
        value_impact_cents = difference * unit_cost_cents

        status = policy.initial_status()
        adjustment = StockAdjustment(
            adjustment_number=next_document_number(
                store_id=store_id, document_type="ADJUSTMENT", prefix=ADJUSTMENT_PREFIX
            ),
            store_id=store_id,
            adjustment_date=adjustment_date,
            adjustment_type=AdjustmentType.from_difference(difference),
            reason=reason,
            notes=notes,
            status=status,
            total_value_impact_cents=value_impact_cents,
            created_by=actor_id,
            approved_by=policy.approver_for(actor_id),
            approved_at=utcnow() if status is AdjustmentStatus.APPROVED else None,
        )
        adjustment.items.append(StockAdjustmentItem(
            product_id=product_id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            quantity_difference=difference,
            unit_cost_cents=unit_cost_cents,
            value_impact_cents=value_impact_cents,
        ))
        db.session.add(adjustment)
        db.session.flush()

        if status is AdjustmentStatus.APPROVED:
            _post_adjustment(adjustment, actor_id)

        db.session.commit()
        logger.info(
            "Adjustment %s (%s) for product %s in store %s: %d -> %d, status %s",
            adjustment.id,
            adjustment.adjustment_number,
            product_id,
            store_id,
            old_quantity,
            new_quantity,
            status.value,
        )
        return adjustment

    return run_with_retry(_op)


def _locked_pending(adjustment_id: int) -> StockAdjustment:
    adjustment = lock_for_update(
        db.session.query(StockAdjustment).filter_by(id=adjustment_id)
    ).first()
    if adjustment is None:
        raise NotFoundError("Stock adjustment not found")
    if adjustment.status is not AdjustmentStatus.PENDING:
        raise ConflictError(
            f"Stock adjustment is already {adjustment.status.value}",
            details={"adjustment_id": adjustment_id, "status": adjustment.status.value},
        )
    return adjustment


def approve_adjustment(adjustment_id: int, approver_id: int) -> StockAdjustment:
    """Approve a PENDING adjustment and post it to stock."""
    def _op():
        adjustment = _locked_pending(adjustment_id)
        adjustment.status = AdjustmentStatus.APPROVED
        adjustment.approved_by = approver_id
        adjustment.approved_at = utcnow()
        db.session.flush()
        _post_adjustment(adjustment, approver_id)
        db.session.commit()
        logger.info("Adjustment %s approved by %s", adjustment_id, approver_id)
        return adjustment

    return run_with_retry(_op)


def reject_adjustment(adjustment_id: int, approver_id: int) -> StockAdjustment:
    def _op():
        adjustment = _locked_pending(adjustment_id)
        adjustment.status = AdjustmentStatus.REJECTED
        adjustment.approved_by = approver_id
        adjustment.approved_at = utcnow()
        db.session.commit()
        logger.info("Adjustment %s rejected by %s", adjustment_id, approver_id)
        return adjustment

    return run_with_retry(_op)


def get_adjustment(adjustment_id: int) -> StockAdjustment | None:
    return db.session.query(StockAdjustment).filter_by(id=adjustment_id).first()


def list_adjustments(
    *,
    store_id: int | None = None,
    adjustment_type: AdjustmentType | str | None = None,
    reason: AdjustmentReason | str | None = None,
    status: AdjustmentStatus | str | None = None,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[StockAdjustment], int]:
    q = db.session.query(StockAdjustment)
    if store_id is not None:
        q = q.filter(StockAdjustment.store_id == store_id)
    if adjustment_type is not None:
        q = q.filter(StockAdjustment.adjustment_type == coerce_enum(AdjustmentType, adjustment_type, "adjustment_type"))
    if reason is not None:
        q = q.filter(StockAdjustment.reason == coerce_enum(AdjustmentReason, reason, "reason"))
    if status is not None:
        q = q.filter(StockAdjustment.status == coerce_enum(AdjustmentStatus, status, "status"))
    if start_date:
        q = q.filter(StockAdjustment.adjustment_date >= coerce_date(start_date, "start_date"))
    if end_date:
        q = q.filter(StockAdjustment.adjustment_date <= coerce_date(end_date, "end_date"))

    total = q.count()
    page = max(1, page)
    limit = min(max(1, limit), 100)
    adjustments = (
        q.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return adjustments, total
