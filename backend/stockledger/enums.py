"""
Closed vocabularies for the stock ledger.

Every value here is persisted by name (VARCHAR + CHECK), so the database
rejects anything outside the set as well as the service layer.
"""

from __future__ import annotations

import enum


class _StrEnum(str, enum.Enum):
    def __str__(self) -> str:
        return self.value


class MovementType(_StrEnum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"


class ReferenceType(_StrEnum):
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    PURCHASE = "PURCHASE"


class InventoryState(_StrEnum):
    SELLABLE = "SELLABLE"
    DAMAGED = "DAMAGED"
    DEFECTIVE = "DEFECTIVE"


class PaymentMethod(_StrEnum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class PaymentStatus(_StrEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    REFUNDED = "REFUNDED"


class ReturnType(_StrEnum):
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    DAMAGED = "DAMAGED"


class ReturnStatus(_StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class RefundMethod(_StrEnum):
    CASH = "CASH"
    CARD = "CARD"
    CREDIT = "CREDIT"
    EXCHANGE = "EXCHANGE"


class ReturnItemCondition(_StrEnum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    DEFECTIVE = "DEFECTIVE"

    @property
    def is_sellable(self) -> bool:
        return self is ReturnItemCondition.GOOD

    @property
    def inventory_state(self) -> InventoryState:
        return InventoryState(self.value) if not self.is_sellable else InventoryState.SELLABLE


class AdjustmentType(_StrEnum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    RECOUNT = "RECOUNT"

    @classmethod
    def from_difference(cls, difference: int) -> "AdjustmentType":
        if difference > 0:
            return cls.INCREASE
        if difference < 0:
            return cls.DECREASE
        return cls.RECOUNT


class AdjustmentReason(_StrEnum):
    PHYSICAL_COUNT = "PHYSICAL_COUNT"
    DAMAGE = "DAMAGE"
    THEFT = "THEFT"
    EXPIRED = "EXPIRED"
    OTHER = "OTHER"


class AdjustmentStatus(_StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
