# Overview: Document number allocation for sales, returns and adjustments.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence

INVOICE_PREFIX = "INV"
RETURN_PREFIX = "RTN"
ADJUSTMENT_PREFIX = "ADJ"


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a store/type, e.g. INV-001-0001.

    Runs inside the caller's transaction: the counter increment is rolled back
    together with the document if the operation fails, so numbers are never
    consumed by failed operations.
    """
    if not store_id:
        raise ValidationError("store_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(store_id, document_type) - 1
    else:
        savepoint = db.session.begin_nested()
        try:
            db.session.add(DocumentSequence(store_id=store_id, document_type=document_type, next_number=2))
            db.session.flush()
            savepoint.commit()
            next_num = 1
        except IntegrityError:
            # another transaction created the sequence first
            savepoint.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(store_id, document_type) - 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"


def _current_number(store_id: int, document_type: str) -> int:
    return int(
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type)
        .scalar()
    )
