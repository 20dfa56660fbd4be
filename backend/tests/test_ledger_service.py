# Overview: Pytest coverage for the append-only movement ledger.

import pytest

from stockledger.enums import InventoryState, MovementType, ReferenceType
from stockledger.errors import ValidationError
from stockledger.extensions import db
from stockledger.models import StockMovement
from stockledger.services import ledger_service, stock_service


class TestAppendMovement:
    def test_sign_follows_movement_type(self, store, product):
        inbound = ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type="in", quantity=5,
            reference_type=ReferenceType.PURCHASE, reference_id=None, actor_id=1,
        )
        outbound = ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.OUT, quantity=2,
            reference_type=ReferenceType.SALE, reference_id=1, actor_id=1,
        )
        db.session.commit()

        assert inbound.movement_type is MovementType.IN
        assert inbound.quantity_delta == 5
        assert outbound.quantity_delta == -2
        assert ledger_service.sum_for_pair(product.id, store.id) == 3

    def test_non_sellable_rows_do_not_count(self, store, product):
        movement = ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.OUT, quantity=2,
            inventory_state=InventoryState.DAMAGED,
            reference_type=ReferenceType.RETURN, reference_id=1, actor_id=1,
        )
        db.session.commit()

        assert movement.quantity == 2
        assert movement.quantity_delta == 0
        assert ledger_service.sum_for_pair(product.id, store.id) == 0

    def test_adjustment_type_requires_explicit_delta(self, store, product):
        with pytest.raises(ValidationError):
            ledger_service.append_movement(
                product_id=product.id, store_id=store.id, movement_type=MovementType.ADJUSTMENT,
                quantity=2, reference_type=ReferenceType.ADJUSTMENT, reference_id=1, actor_id=1,
            )

    @pytest.mark.parametrize("movement_type,delta", [
        (MovementType.IN, -1),
        (MovementType.OUT, 1),
        (MovementType.IN, 4),
    ])
    def test_inconsistent_delta_rejected(self, store, product, movement_type, delta):
        with pytest.raises(ValidationError):
            ledger_service.append_movement(
                product_id=product.id, store_id=store.id, movement_type=movement_type,
                quantity=3, quantity_delta=delta,
                reference_type=ReferenceType.SALE, reference_id=1, actor_id=1,
            )

    @pytest.mark.parametrize("quantity", [0, -3, True, 2.0])
    def test_quantity_must_be_positive_integer(self, store, product, quantity):
        with pytest.raises(ValidationError):
            ledger_service.append_movement(
                product_id=product.id, store_id=store.id, movement_type=MovementType.IN,
                quantity=quantity, reference_type=ReferenceType.PURCHASE, reference_id=None, actor_id=1,
            )

    def test_unknown_movement_type_rejected(self, store, product):
        with pytest.raises(ValidationError):
            ledger_service.append_movement(
                product_id=product.id, store_id=store.id, movement_type="SHRINK",
                quantity=1, reference_type=ReferenceType.SALE, reference_id=1, actor_id=1,
            )


class TestAppendOnly:
    def test_update_is_rejected(self, store, product):
        movement = ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.IN, quantity=1,
            reference_type=ReferenceType.PURCHASE, reference_id=None, actor_id=1,
        )
        db.session.commit()

        movement.notes = "rewritten"
        with pytest.raises(RuntimeError):
            db.session.flush()
        db.session.rollback()

    def test_delete_is_rejected(self, store, product):
        movement = ledger_service.append_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.IN, quantity=1,
            reference_type=ReferenceType.PURCHASE, reference_id=None, actor_id=1,
        )
        db.session.commit()

        db.session.delete(movement)
        with pytest.raises(RuntimeError):
            db.session.flush()
        db.session.rollback()
        assert db.session.query(StockMovement).count() == 1


class TestPostMovement:
    def test_records_applied_delta_when_clamped(self, store, product, seed_stock):
        seed_stock(product, store, 2)

        change, movement = ledger_service.post_movement(
            product_id=product.id, store_id=store.id, movement_type=MovementType.OUT, quantity=5,
            reference_type=ReferenceType.SALE, reference_id=1, actor_id=1,
        )
        db.session.commit()

        assert change.current == 0
        assert movement.quantity == 5
        assert movement.quantity_delta == -2
        assert ledger_service.sum_for_pair(product.id, store.id) == stock_service.get_quantity(product.id, store.id)

    def test_only_in_and_out(self, store, product):
        with pytest.raises(ValidationError):
            ledger_service.post_movement(
                product_id=product.id, store_id=store.id, movement_type=MovementType.TRANSFER,
                quantity=1, reference_type=ReferenceType.TRANSFER, reference_id=1, actor_id=1,
            )


class TestListMovements:
    def test_filters_by_reference_newest_first(self, store, product, seed_stock):
        seed_stock(product, store, 10)
        for ref in (1, 2, 1):
            ledger_service.post_movement(
                product_id=product.id, store_id=store.id, movement_type=MovementType.OUT, quantity=1,
                reference_type=ReferenceType.SALE, reference_id=ref, actor_id=1,
            )
        db.session.commit()

        movements = ledger_service.list_movements(reference_type="SALE", reference_id=1)
        assert len(movements) == 2
        assert movements[0].id > movements[1].id

        assert len(ledger_service.list_movements(product_id=product.id, store_id=store.id)) == 4
