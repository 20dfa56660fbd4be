# Overview: Consistency checker; compares the Stock Store against the Movement Ledger.

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import func

from ..errors import ConflictError
from ..extensions import db
from ..models import Stock, StockMovement
from . import ledger_service, stock_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Discrepancy:
    product_id: int
    store_id: int
    stock_quantity: int
    ledger_total: int

    @property
    def difference(self) -> int:
        return self.stock_quantity - self.ledger_total

    def to_dict(self) -> dict:
        data = asdict(self)
        data["difference"] = self.difference
        return data


def check_pair(product_id: int, store_id: int) -> Discrepancy | None:
    """Compare one pair; None when Stock.quantity equals the signed ledger total."""
    stock_quantity = stock_service.get_quantity(product_id, store_id)
    ledger_total = ledger_service.sum_for_pair(product_id, store_id)
    if stock_quantity == ledger_total:
        return None
    return Discrepancy(product_id, store_id, stock_quantity, ledger_total)


def find_discrepancies(store_id: int | None = None) -> list[Discrepancy]:
    """
    Every pair whose stock and ledger disagree.

    Covers pairs that only exist on one side: a stock row with no movements
    compares against 0, and movements with no stock row compare against a
    quantity of 0.
    """
    stock_q = db.session.query(Stock.product_id, Stock.store_id, Stock.quantity)
    ledger_q = db.session.query(
        StockMovement.product_id,
        StockMovement.store_id,
        func.coalesce(func.sum(StockMovement.quantity_delta), 0),
    ).group_by(StockMovement.product_id, StockMovement.store_id)
    if store_id is not None:
        stock_q = stock_q.filter(Stock.store_id == store_id)
        ledger_q = ledger_q.filter(StockMovement.store_id == store_id)

    stock_totals = {(p, s): int(q) for p, s, q in stock_q.all()}
    ledger_totals = {(p, s): int(t) for p, s, t in ledger_q.all()}

    discrepancies = []
    for pair in sorted(set(stock_totals) | set(ledger_totals)):
        stock_quantity = stock_totals.get(pair, 0)
        ledger_total = ledger_totals.get(pair, 0)
        if stock_quantity != ledger_total:
            discrepancies.append(Discrepancy(pair[0], pair[1], stock_quantity, ledger_total))

    if discrepancies:
        logger.warning("Found %d stock/ledger discrepancies", len(discrepancies))
    return discrepancies


def assert_consistent(store_id: int | None = None) -> None:
    discrepancies = find_discrepancies(store_id)
    if discrepancies:
        raise ConflictError(
            "Stock does not match the movement ledger",
            details={"discrepancies": [d.to_dict() for d in discrepancies]},
        )
