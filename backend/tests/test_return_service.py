# Overview: Pytest coverage for Return Settlement.

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stockledger.enums import InventoryState, MovementType, ReferenceType, ReturnStatus
from stockledger.errors import ConflictError, NotFoundError, StorageError, ValidationError
from stockledger.extensions import db
from stockledger.models import Return, ReturnItem
from stockledger.services import consistency_service, ledger_service, return_service
from stockledger.services.stock_service import get_quantity

from conftest import ACTOR_ID

MANAGER_ID = 11


def _item(product, quantity=1, condition="GOOD", price=1000):
    return {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": price,
        "condition": condition,
    }


def _return_movements(return_id):
    return ledger_service.list_movements(reference_type=ReferenceType.RETURN, reference_id=return_id)


class TestCreateReturn:
    def test_pending_return_has_no_stock_effect(self, store, product, seed_stock):
        seed_stock(product, store, 10)

        return_doc = return_service.create_return(store.id, [_item(product, 3, price=700)], ACTOR_ID)

        assert return_doc.status is ReturnStatus.PENDING
        assert return_doc.return_number == f"RTN-{store.id:03d}-0001"
        assert return_doc.total_amount_cents == 2100
        assert return_doc.refund_amount_cents == 2100
        assert return_doc.approved_by is None
        assert get_quantity(product.id, store.id) == 10
        assert _return_movements(return_doc.id) == []

    def test_created_as_approved_settles_stock(self, store, product, seed_stock):
        seed_stock(product, store, 10)

        return_doc = return_service.create_return(
            store.id, [_item(product, 2)], ACTOR_ID, status="APPROVED"
        )

        assert return_doc.approved_by == ACTOR_ID
        assert return_doc.approved_at is not None
        assert get_quantity(product.id, store.id) == 12

    def test_created_as_completed_settles_stock(self, store, product, seed_stock):
        seed_stock(product, store, 10)

        return_service.create_return(store.id, [_item(product, 1)], ACTOR_ID, status=ReturnStatus.COMPLETED)

        assert get_quantity(product.id, store.id) == 11

    def test_item_without_condition_rejected(self, store, product):
        item = _item(product)
        del item["condition"]
        with pytest.raises(ValidationError):
            return_service.create_return(store.id, [item], ACTOR_ID)
        assert db.session.query(Return).count() == 0

    def test_missing_store_and_items_rejected(self, product):
        with pytest.raises(ValidationError):
            return_service.create_return(None, [_item(product)], ACTOR_ID)
        with pytest.raises(ValidationError):
            return_service.create_return(1, [], ACTOR_ID)

    def test_store_id_must_be_integer(self, store, product):
        with pytest.raises(ValidationError):
            return_service.create_return(True, [_item(product)], ACTOR_ID)
        with pytest.raises(ValidationError):
            return_service.create_return("main", [_item(product)], ACTOR_ID)
        assert db.session.query(Return).count() == 0

    def test_unknown_sale(self, store, product):
        with pytest.raises(NotFoundError):
            return_service.create_return(store.id, [_item(product)], ACTOR_ID, sale_id=404)

    def test_refund_cannot_exceed_total(self, store, product):
        with pytest.raises(ValidationError):
            return_service.create_return(
                store.id, [_item(product, 1, price=500)], ACTOR_ID, refund_amount_cents=501
            )


class TestSettleReturn:
    def test_good_items_return_to_stock(self, store, product, seed_stock):
        seed_stock(product, store, 40)
        return_doc = return_service.create_return(store.id, [_item(product, 4)], ACTOR_ID)

        settled = return_service.settle_return(return_doc.id, "APPROVED", MANAGER_ID)

        assert settled.status is ReturnStatus.APPROVED
        assert settled.approved_by == MANAGER_ID
        assert get_quantity(product.id, store.id) == 44
        [movement] = _return_movements(return_doc.id)
        assert (movement.movement_type, movement.quantity, movement.quantity_delta) == (MovementType.IN, 4, 4)

    @pytest.mark.parametrize("condition", ["DAMAGED", "DEFECTIVE"])
    def test_unsellable_items_are_tracked_not_restocked(self, store, product, seed_stock, condition):
        seed_stock(product, store, 44)
        return_doc = return_service.create_return(store.id, [_item(product, 2, condition)], ACTOR_ID)

        return_service.settle_return(return_doc.id, ReturnStatus.APPROVED, MANAGER_ID)

        assert get_quantity(product.id, store.id) == 44
        [movement] = _return_movements(return_doc.id)
        assert movement.movement_type is MovementType.OUT
        assert movement.quantity == 2
        assert movement.quantity_delta == 0
        assert movement.inventory_state is InventoryState(condition)
        assert consistency_service.find_discrepancies() == []

    def test_reject_has_no_stock_effect(self, store, product, seed_stock):
        seed_stock(product, store, 5)
        return_doc = return_service.create_return(store.id, [_item(product, 2)], ACTOR_ID)

        rejected = return_service.settle_return(return_doc.id, "REJECTED", MANAGER_ID)

        assert rejected.status is ReturnStatus.REJECTED
        assert rejected.approved_by == MANAGER_ID
        assert get_quantity(product.id, store.id) == 5
        assert _return_movements(return_doc.id) == []

    def test_settling_twice_is_a_no_op(self, store, product, seed_stock):
        seed_stock(product, store, 5)
        return_doc = return_service.create_return(store.id, [_item(product, 2)], ACTOR_ID)
        return_service.settle_return(return_doc.id, "APPROVED", MANAGER_ID)

        again = return_service.settle_return(return_doc.id, "APPROVED", ACTOR_ID)

        assert again.approved_by == MANAGER_ID
        assert get_quantity(product.id, store.id) == 7
        assert len(_return_movements(return_doc.id)) == 1

    @pytest.mark.parametrize("first,then", [
        ("APPROVED", "REJECTED"),
        ("REJECTED", "APPROVED"),
    ])
    def test_decided_returns_cannot_change_course(self, store, product, seed_stock, first, then):
        seed_stock(product, store, 5)
        return_doc = return_service.create_return(store.id, [_item(product, 1)], ACTOR_ID)
        return_service.settle_return(return_doc.id, first, MANAGER_ID)
        quantity = get_quantity(product.id, store.id)

        with pytest.raises(ConflictError):
            return_service.settle_return(return_doc.id, then, MANAGER_ID)

        assert get_quantity(product.id, store.id) == quantity

    def test_only_approve_or_reject(self, store, product):
        return_doc = return_service.create_return(store.id, [_item(product)], ACTOR_ID)
        with pytest.raises(ValidationError):
            return_service.settle_return(return_doc.id, "COMPLETED", MANAGER_ID)

    def test_ledger_failure_keeps_return_pending(self, store, product, seed_stock, monkeypatch):
        seed_stock(product, store, 5)
        return_doc = return_service.create_return(store.id, [_item(product, 2)], ACTOR_ID)
        return_id = return_doc.id

        def broken_append(**kwargs):
            raise SQLAlchemyError("ledger unavailable")

        monkeypatch.setattr(ledger_service, "append_movement", broken_append)
        with pytest.raises(StorageError):
            return_service.settle_return(return_id, "APPROVED", MANAGER_ID)

        assert return_service.get_return(return_id).status is ReturnStatus.PENDING
        assert get_quantity(product.id, store.id) == 5

    def test_settle_applies_refund_edits_in_same_step(self, store, product, seed_stock):
        seed_stock(product, store, 10)
        return_doc = return_service.create_return(store.id, [_item(product, 2, price=500)], ACTOR_ID)

        settled = return_service.settle_return(
            return_doc.id, "APPROVED", MANAGER_ID, refund_method="CARD", refund_amount_cents=800
        )

        assert settled.status is ReturnStatus.APPROVED
        assert settled.refund_amount_cents == 800
        assert settled.refund_method.value == "CARD"
        assert get_quantity(product.id, store.id) == 12

    def test_invalid_edit_leaves_return_pending(self, store, product, seed_stock):
        seed_stock(product, store, 10)
        return_doc = return_service.create_return(store.id, [_item(product, 3, price=500)], ACTOR_ID)
        return_id = return_doc.id

        with pytest.raises(ValidationError):
            return_service.settle_return(return_id, "APPROVED", MANAGER_ID, refund_amount_cents=999999)

        assert return_service.get_return(return_id).status is ReturnStatus.PENDING
        assert get_quantity(product.id, store.id) == 10
        assert _return_movements(return_id) == []


class TestCompleteAndDelete:
    def test_complete_approved_return(self, store, product, seed_stock):
        seed_stock(product, store, 5)
        return_doc = return_service.create_return(store.id, [_item(product, 1)], ACTOR_ID)
        return_service.settle_return(return_doc.id, "APPROVED", MANAGER_ID)

        completed = return_service.complete_return(return_doc.id, MANAGER_ID)

        assert completed.status is ReturnStatus.COMPLETED
        assert get_quantity(product.id, store.id) == 6

    def test_pending_return_cannot_be_completed(self, store, product):
        return_doc = return_service.create_return(store.id, [_item(product)], ACTOR_ID)
        with pytest.raises(ConflictError):
            return_service.complete_return(return_doc.id, MANAGER_ID)

    @pytest.mark.parametrize("status", ["PENDING", "REJECTED"])
    def test_undecided_or_rejected_returns_can_be_deleted(self, store, product, status):
        return_doc = return_service.create_return(store.id, [_item(product)], ACTOR_ID, status=status)

        return_service.delete_return(return_doc.id)

        assert db.session.query(Return).count() == 0
        assert db.session.query(ReturnItem).count() == 0

    @pytest.mark.parametrize("status", ["APPROVED", "COMPLETED"])
    def test_settled_returns_cannot_be_deleted(self, store, product, status):
        return_doc = return_service.create_return(store.id, [_item(product)], ACTOR_ID, status=status)

        with pytest.raises(ConflictError):
            return_service.delete_return(return_doc.id)

        assert db.session.query(Return).count() == 1

    def test_update_refund_details(self, store, product):
        return_doc = return_service.create_return(store.id, [_item(product, 2, price=500)], ACTOR_ID)

        updated = return_service.update_return(
            return_doc.id, refund_method="credit", refund_amount_cents=600, reason="Scuffed box"
        )

        assert updated.refund_method.value == "CREDIT"
        assert updated.refund_amount_cents == 600
        assert updated.reason == "Scuffed box"

    def test_list_filters_by_status(self, store, product):
        return_service.create_return(store.id, [_item(product)], ACTOR_ID)
        return_service.create_return(store.id, [_item(product)], ACTOR_ID, status="REJECTED")

        pending, total = return_service.list_returns(store_id=store.id, status="pending")
        assert total == 1
        assert pending[0].status is ReturnStatus.PENDING
