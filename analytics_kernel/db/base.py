"""
Module: analytics_kernel.db.base
Responsibility: Declarative base and column types for the SQLAlchemy read
    models that mirror the upstream application's records.
Architecture position: Kernel > DB.  Lowest-level import target for
    models/.  MUST NOT import from models/, selectors/ or outer layers.

Invariants enforced:
    - UUID surrogate primary keys on every table.
    - Decimal columns round-trip exactly: amounts are stored as strings
      via DecimalString, so no backend ever hands back a float.
"""

from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID type stored as String(36) for cross-database portability."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class DecimalString(TypeDecorator):
    """
    Decimal type stored as its canonical string.

    Contract:
        Transparently converts between Python Decimal and text, preserving
        every digit (SQLite's NUMERIC affinity would otherwise coerce to
        float).

    Guarantees:
        - process_bind_param: Decimal -> str on INSERT/UPDATE.
        - process_result_value: str -> Decimal on SELECT.
        - Floats are refused at bind time.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError(f"Float values are not allowed for Decimal columns: {value!r}")
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is not None:
            return Decimal(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all read models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to DecimalString (exact round-trip).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )
