from __future__ import annotations

from ..extensions import db


def enum_column_type(enum_cls, length: int = 32):
    """Portable enum column: VARCHAR plus a CHECK constraint, stored by name."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=length,
        name=f"ck_{enum_cls.__name__.lower()}",
    )
