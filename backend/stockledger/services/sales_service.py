"""
Sale Commit and Sale Reversal.

A sale is one transaction: the Sale row, its SaleItems, one stock decrement
and one OUT movement per item all commit together or not at all. Deleting a
sale is the mirror image: IN movements and stock increments for every item,
then the Sale row (items cascade), again as one transaction.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import or_

from ..enums import MovementType, PaymentMethod, PaymentStatus, ReferenceType
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Return, Sale, SaleItem
from ..validation import (
    coerce_date,
    coerce_enum,
    optional_int,
    optional_str,
    require_amount_cents,
    require_int,
    require_items,
)
from . import ledger_service
from .catalog_service import require_product, require_store
from .concurrency import lock_for_update, run_with_retry
from .document_service import INVOICE_PREFIX, next_document_number

logger = logging.getLogger(__name__)

SALE_ITEM_FIELDS = ("product_id", "quantity", "unit_price_cents")
SALE_DELETION_NOTE = "Sale deletion reversal"


def _normalize_items(items) -> list[dict]:
    items = require_items(
        items,
        SALE_ITEM_FIELDS,
        "Each item must have product_id, quantity, and unit_price_cents",
    )
    normalized = []
    for item in items:
        quantity = require_int(item["quantity"], "quantity", minimum=1)
        unit_price_cents = require_amount_cents(item["unit_price_cents"], "unit_price_cents")
        discount_cents = optional_int(item.get("discount_cents"), "discount_cents", default=0, minimum=0)
        if discount_cents > quantity * unit_price_cents:
            raise ValidationError("Item discount cannot exceed the item amount")
        normalized.append({
            "product_id": require_int(item["product_id"], "product_id", minimum=1),
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
            "discount_cents": discount_cents,
        })
    return normalized


def _item_total(item: dict) -> int:
    return item["quantity"] * item["unit_price_cents"] - item["discount_cents"]


def commit_sale(
    store_id: int,
    items,
    actor_id: int,
    *,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    sale_date: date | str | None = None,
    payment_method: PaymentMethod | str | None = PaymentMethod.CASH,
    payment_status: PaymentStatus | str | None = PaymentStatus.PAID,
    tax_cents: int | None = 0,
    discount_cents: int | None = 0,
    notes: str | None = None,
) -> Sale:
    """
    Record a sale and take its items out of stock.

    Steps, all in one transaction:
    1. compute totals, allocate the invoice number, insert the Sale
    2. insert every SaleItem
    3. per item: decrement stock (clamped at 0) and append OUT/SALE

    Raises:
        ValidationError: missing store/items or malformed item
        NotFoundError: unknown store or product
        StorageError: the datastore failed; nothing was written
    """
    if store_id is None:
        raise ValidationError("Missing required fields: store_id, items")
    store_id = require_int(store_id, "store_id", minimum=1)
    normalized = _normalize_items(items)

    tax_cents = optional_int(tax_cents, "tax_cents", default=0, minimum=0)
    discount_cents = optional_int(discount_cents, "discount_cents", default=0, minimum=0)
    payment_method = coerce_enum(PaymentMethod, payment_method, "payment_method", default=PaymentMethod.CASH)
    payment_status = coerce_enum(PaymentStatus, payment_status, "payment_status", default=PaymentStatus.PAID)
    sale_date = coerce_date(sale_date, "sale_date")

    subtotal_cents = sum(_item_total(item) for item in normalized)
    total_cents = subtotal_cents + tax_cents - discount_cents
    if total_cents < 0:
        raise ValidationError("Sale discount cannot exceed subtotal plus tax")

    def _op():
        require_store(store_id)
        for item in normalized:
            require_product(item["product_id"])

        sale = Sale(
            invoice_number=next_document_number(
                store_id=store_id, document_type="SALE", prefix=INVOICE_PREFIX
            ),
            store_id=store_id,
            customer_name=optional_str(customer_name, "customer_name", max_length=255),
            customer_phone=optional_str(customer_phone, "customer_phone", max_length=32),
            customer_email=optional_str(customer_email, "customer_email", max_length=255),
            sale_date=sale_date,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            discount_cents=discount_cents,
            total_cents=total_cents,
            payment_method=payment_method,
            payment_status=payment_status,
            notes=notes,
            created_by=actor_id,
        )
        db.session.add(sale)
        db.session.flush()

        for item in normalized:
            sale.items.append(SaleItem(
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price_cents=item["unit_price_cents"],
                discount_cents=item["discount_cents"],
                total_price_cents=_item_total(item),
            ))
        db.session.flush()

        for item in sale.items:
            ledger_service.post_movement(
                product_id=item.product_id,
                store_id=store_id,
                movement_type=MovementType.OUT,
                quantity=item.quantity,
                reference_type=ReferenceType.SALE,
                reference_id=sale.id,
                actor_id=actor_id,
                notes=f"Sale {sale.invoice_number}",
            )

        db.session.commit()
        logger.info(
            "Committed sale %s (%s) in store %s: %d item(s), total %d cents",
            sale.id,
            sale.invoice_number,
            store_id,
            len(normalized),
            total_cents,
        )
        return sale

    return run_with_retry(_op)


def reverse_sale(sale_id: int, actor_id: int) -> None:
    """
    Delete a sale and put its items back into stock.

    Raises:
        NotFoundError: unknown sale
        ConflictError: a return references the sale
    """
    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found")

        has_returns = db.session.query(Return.id).filter_by(sale_id=sale_id).first()
        if has_returns:
            raise ConflictError("Cannot delete sale with associated returns")

        for item in sale.items:
            ledger_service.post_movement(
                product_id=item.product_id,
                store_id=sale.store_id,
                movement_type=MovementType.IN,
                quantity=item.quantity,
                reference_type=ReferenceType.SALE,
                reference_id=sale.id,
                actor_id=actor_id,
                notes=SALE_DELETION_NOTE,
            )

        invoice_number = sale.invoice_number
        db.session.delete(sale)
        db.session.commit()
        logger.info("Reversed and deleted sale %s (%s)", sale_id, invoice_number)

    run_with_retry(_op)


SALE_UPDATABLE_FIELDS = (
    "customer_name",
    "customer_phone",
    "customer_email",
    "payment_method",
    "payment_status",
    "notes",
)


def update_sale(sale_id: int, **fields) -> Sale:
    """
    Update sale metadata after creation.

    Only customer, payment and note fields are editable; items and amounts
    are fixed once stock has moved.
    """
    unknown = set(fields) - set(SALE_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    clean: dict = {}
    for key, value in fields.items():
        if key == "payment_method":
            clean[key] = coerce_enum(PaymentMethod, value, key)
        elif key == "payment_status":
            if value is None:
                raise ValidationError("payment_status cannot be empty")
            clean[key] = coerce_enum(PaymentStatus, value, key)
        elif key == "notes":
            clean[key] = value
        else:
            clean[key] = optional_str(value, key, max_length=255)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found")
        for key, value in clean.items():
            setattr(sale, key, value)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id).first()


def list_sales(
    *,
    store_id: int | None = None,
    payment_status: PaymentStatus | str | None = None,
    payment_method: PaymentMethod | str | None = None,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Sale], int]:
    """Paginated sales, newest first. Returns (sales, total_count)."""
    q = db.session.query(Sale)
    if store_id is not None:
        q = q.filter(Sale.store_id == store_id)
    if payment_status is not None:
        q = q.filter(Sale.payment_status == coerce_enum(PaymentStatus, payment_status, "payment_status"))
    if payment_method is not None:
        q = q.filter(Sale.payment_method == coerce_enum(PaymentMethod, payment_method, "payment_method"))
    if start_date:
        q = q.filter(Sale.sale_date >= coerce_date(start_date, "start_date"))
    if end_date:
        q = q.filter(Sale.sale_date <= coerce_date(end_date, "end_date"))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Sale.invoice_number.ilike(pattern),
            Sale.customer_name.ilike(pattern),
            Sale.customer_phone.ilike(pattern),
        ))

    total = q.count()
    page = max(1, page)
    limit = min(max(1, limit), 100)
    sales = (
        q.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sales, total
