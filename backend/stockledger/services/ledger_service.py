# Overview: Movement Ledger; append-only history of stock changes.

from __future__ import annotations

from sqlalchemy import func

from ..enums import InventoryState, MovementType, ReferenceType
from ..errors import ValidationError
from ..extensions import db
from ..validation import coerce_enum
from ..models import StockMovement
from . import stock_service
from .stock_service import StockChange
"""
Movement Ledger Invariants (authoritative)

- Append-only: rows are inserted, never updated or deleted.
- Rows are written inside the same DB transaction as the stock change and the
  business record they describe.
- quantity is the unsigned size of the event. quantity_delta is its signed
  effect on sellable stock:
    IN  -> +quantity
    OUT -> -quantity (or the smaller applied amount when the decrement clamped)
    non-SELLABLE rows -> 0 (tracked, but never counted as sellable stock)
    ADJUSTMENT / TRANSFER -> explicit, supplied by the caller
- SUM(quantity_delta) for a pair equals Stock.quantity for that pair.
"""


def _derive_delta(
    movement_type: MovementType,
    quantity: int,
    inventory_state: InventoryState,
    quantity_delta: int | None,
) -> int:
    if quantity_delta is None:
        if inventory_state is not InventoryState.SELLABLE:
            return 0
        if movement_type is MovementType.IN:
            return quantity
        if movement_type is MovementType.OUT:
            return -quantity
        raise ValidationError(f"{movement_type.value} movements require an explicit quantity_delta")

    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
        raise ValidationError("quantity_delta must be an integer")
    if abs(quantity_delta) > quantity:
        raise ValidationError("quantity_delta cannot exceed the movement quantity")
    if movement_type is MovementType.IN and quantity_delta < 0:
        raise ValidationError("IN movements cannot decrease stock")
    if movement_type is MovementType.OUT and quantity_delta > 0:
        raise ValidationError("OUT movements cannot increase stock")
    if inventory_state is not InventoryState.SELLABLE and quantity_delta != 0:
        raise ValidationError("non-sellable movements cannot change sellable stock")
    return quantity_delta


def append_movement(
    *,
    product_id: int,
    store_id: int,
    movement_type: MovementType | str,
    quantity: int,
    reference_type: ReferenceType | str | None,
    reference_id: int | None,
    actor_id: int | None,
    notes: str | None = None,
    quantity_delta: int | None = None,
    inventory_state: InventoryState | str = InventoryState.SELLABLE,
) -> StockMovement:
    """
    Append one immutable movement row.

    - No stock mutation here; see post_movement for the paired write.
    - Flushes so the row id is assigned, never commits.
    """
    if movement_type is None:
        raise ValidationError("movement_type is required")
    movement_type = coerce_enum(MovementType, movement_type, "movement_type")
    inventory_state = coerce_enum(InventoryState, inventory_state, "inventory_state", default=InventoryState.SELLABLE)
    if reference_type is not None:
        reference_type = coerce_enum(ReferenceType, reference_type, "reference_type")

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("movement quantity must be a positive integer")

    delta = _derive_delta(movement_type, quantity, inventory_state, quantity_delta)

    movement = StockMovement(
        product_id=product_id,
        store_id=store_id,
        movement_type=movement_type,
        quantity=quantity,
        quantity_delta=delta,
        inventory_state=inventory_state,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes[:255] if notes else None,
        created_by=actor_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def post_movement(
    *,
    product_id: int,
    store_id: int,
    movement_type: MovementType,
    quantity: int,
    reference_type: ReferenceType,
    reference_id: int | None,
    actor_id: int | None,
    notes: str | None = None,
) -> tuple[StockChange, StockMovement]:
    """
    Move sellable stock and record it: apply_delta, then append the movement
    with the delta that was actually applied.
    """
    if movement_type is MovementType.IN:
        requested = quantity
    elif movement_type is MovementType.OUT:
        requested = -quantity
    else:
        raise ValidationError("post_movement only handles IN and OUT movements")

    change = stock_service.apply_delta(product_id, store_id, requested, actor_id)
    movement = append_movement(
        product_id=product_id,
        store_id=store_id,
        movement_type=movement_type,
        quantity=quantity,
        quantity_delta=change.applied_delta,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_id=actor_id,
        notes=notes,
    )
    return change, movement


def sum_for_pair(product_id: int, store_id: int) -> int:
    """Signed ledger total for a pair; used for consistency checks, not on the hot path."""
    total = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity_delta), 0))
        .filter(
            StockMovement.product_id == product_id,
            StockMovement.store_id == store_id,
        )
        .scalar()
    )
    return int(total or 0)


def list_movements(
    *,
    product_id: int | None = None,
    store_id: int | None = None,
    reference_type: ReferenceType | str | None = None,
    reference_id: int | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if store_id is not None:
        q = q.filter(StockMovement.store_id == store_id)
    if reference_type is not None:
        q = q.filter(StockMovement.reference_type == coerce_enum(ReferenceType, reference_type, "reference_type"))
    if reference_id is not None:
        q = q.filter(StockMovement.reference_id == reference_id)

    return q.order_by(StockMovement.id.desc()).limit(limit).all()
