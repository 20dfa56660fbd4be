# Overview: Pytest coverage for the stock/ledger consistency invariant.

"""
End-to-end ledger scenario:

Stock starts at 50. Sell 10 -> 40. Return 4 GOOD, approve -> 44.
Return 2 DAMAGED, approve -> still 44. Count says 50 against an asserted 44
-> INCREASE of 6 at unit cost. Every step leaves stock equal to the signed
ledger total.
"""

import pytest
from sqlalchemy import update

from stockledger.enums import AdjustmentType, InventoryState, MovementType, ReferenceType
from stockledger.errors import ConflictError
from stockledger.extensions import db
from stockledger.models import Stock
from stockledger.services import (
    adjustment_service,
    consistency_service,
    ledger_service,
    return_service,
    sales_service,
    stock_service,
)

from conftest import ACTOR_ID


def _movements(reference_type, reference_id):
    return [
        (m.movement_type, m.quantity, m.inventory_state)
        for m in ledger_service.list_movements(reference_type=reference_type, reference_id=reference_id)
    ]


class TestLedgerScenario:
    def test_sale_return_damage_and_recount(self, store, make_product, seed_stock):
        product = make_product(cost_price_cents=420)
        seed_stock(product, store, 50)

        sale = sales_service.commit_sale(
            store.id,
            [{"product_id": product.id, "quantity": 10, "unit_price_cents": 999}],
            ACTOR_ID,
        )
        assert stock_service.get_quantity(product.id, store.id) == 40
        assert _movements(ReferenceType.SALE, sale.id) == [(MovementType.OUT, 10, InventoryState.SELLABLE)]
        consistency_service.assert_consistent()

        good = return_service.create_return(
            store.id,
            [{"product_id": product.id, "quantity": 4, "unit_price_cents": 999, "condition": "GOOD"}],
            ACTOR_ID,
            sale_id=sale.id,
        )
        return_service.settle_return(good.id, "APPROVED", ACTOR_ID)
        assert stock_service.get_quantity(product.id, store.id) == 44
        assert _movements(ReferenceType.RETURN, good.id) == [(MovementType.IN, 4, InventoryState.SELLABLE)]
        consistency_service.assert_consistent()

        damaged = return_service.create_return(
            store.id,
            [{"product_id": product.id, "quantity": 2, "unit_price_cents": 999, "condition": "DAMAGED"}],
            ACTOR_ID,
            sale_id=sale.id,
        )
        return_service.settle_return(damaged.id, "APPROVED", ACTOR_ID)
        assert stock_service.get_quantity(product.id, store.id) == 44
        assert _movements(ReferenceType.RETURN, damaged.id) == [(MovementType.OUT, 2, InventoryState.DAMAGED)]
        consistency_service.assert_consistent()

        adjustment = adjustment_service.apply_adjustment(product.id, store.id, 44, 50, ACTOR_ID)
        assert adjustment.adjustment_type is AdjustmentType.INCREASE
        assert adjustment.items[0].value_impact_cents == 6 * 420
        assert stock_service.get_quantity(product.id, store.id) == 50
        assert _movements(ReferenceType.ADJUSTMENT, adjustment.id) == [(MovementType.IN, 6, InventoryState.SELLABLE)]

        assert ledger_service.sum_for_pair(product.id, store.id) == 50
        assert consistency_service.find_discrepancies() == []


class TestDiscrepancies:
    def test_direct_stock_write_is_detected(self, store, product, seed_stock):
        seed_stock(product, store, 10)
        db.session.execute(
            update(Stock)
            .where(Stock.product_id == product.id, Stock.store_id == store.id)
            .values(quantity=13)
        )
        db.session.commit()

        [discrepancy] = consistency_service.find_discrepancies()
        assert (discrepancy.stock_quantity, discrepancy.ledger_total, discrepancy.difference) == (13, 10, 3)
        assert consistency_service.check_pair(product.id, store.id) == discrepancy

        with pytest.raises(ConflictError) as exc_info:
            consistency_service.assert_consistent()
        assert exc_info.value.details["discrepancies"][0]["difference"] == 3

    def test_ledger_only_pair_is_detected(self, store, product):
        ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.IN, quantity=4,
            reference_type=ReferenceType.PURCHASE, reference_id=None, actor_id=ACTOR_ID,
        )
        db.session.commit()

        [discrepancy] = consistency_service.find_discrepancies()
        assert (discrepancy.stock_quantity, discrepancy.ledger_total) == (0, 4)

    def test_store_filter(self, store, other_store, product, seed_stock):
        seed_stock(product, store, 3)
        seed_stock(product, other_store, 3)
        db.session.execute(
            update(Stock).where(Stock.store_id == other_store.id).values(quantity=0)
        )
        db.session.commit()

        assert consistency_service.find_discrepancies(store.id) == []
        assert len(consistency_service.find_discrepancies(other_store.id)) == 1
