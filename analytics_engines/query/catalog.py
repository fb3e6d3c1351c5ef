"""
Module: analytics_engines.query.catalog
Responsibility:
    Typed field catalog for custom reports: which fields each data source
    offers, their types, and which filter operators are legal per type.

Architecture position:
    Engines -- pure lookup tables.  The catalog content is declarative data
    (``analytics_config/catalog.yaml``); this module turns the parsed
    definitions into typed, frozen lookups.

Invariants enforced:
    - Operator legality is a fixed table (see ``_LEGAL_OPERATORS``); an
      illegal (operator, type) pair is rejected before any data is read.
    - Field ids are unique within a data source.

Failure modes:
    - UnknownDataSourceError / UnknownFieldError for undeclared ids.
    - InvalidFilterError for illegal operators.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from analytics_kernel.exceptions import (
    InvalidFilterError,
    UnknownDataSourceError,
    UnknownFieldError,
)

if TYPE_CHECKING:
    from analytics_config.schema import CatalogDefinition


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"
    BOOLEAN = "boolean"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldType.NUMBER, FieldType.CURRENCY)


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    BETWEEN = "between"
    IN_RANGE = "in_range"


_ALL_TYPES = frozenset(FieldType)
_ORDERED_TYPES = frozenset({FieldType.NUMBER, FieldType.DATE, FieldType.CURRENCY})

_LEGAL_OPERATORS: dict[Operator, frozenset[FieldType]] = {
    Operator.EQUALS: _ALL_TYPES,
    Operator.NOT_EQUALS: _ALL_TYPES,
    Operator.GREATER_THAN: _ORDERED_TYPES,
    Operator.LESS_THAN: _ORDERED_TYPES,
    Operator.CONTAINS: frozenset({FieldType.TEXT}),
    Operator.BETWEEN: _ORDERED_TYPES,
    Operator.IN_RANGE: frozenset({FieldType.DATE}),
}


def operators_for(field_type: FieldType | str) -> tuple[Operator, ...]:
    """Operators legal for ``field_type``, in declaration order."""
    ft = FieldType(field_type)
    return tuple(op for op in Operator if ft in _LEGAL_OPERATORS[op])


def is_legal(operator: Operator, field_type: FieldType) -> bool:
    return field_type in _LEGAL_OPERATORS[operator]


@dataclass(frozen=True, slots=True)
class Field:
    """A typed column a custom report can select, filter, sort or group by."""

    id: str
    name: str
    source_table: str
    display_name: str
    type: FieldType
    derived: bool = False


@dataclass(frozen=True, slots=True)
class DataSource:
    """A catalog data source: ordered fields plus its natural date field."""

    id: str
    display_name: str
    fields: tuple[Field, ...]
    date_field: str | None = None

    def field(self, field_id: str) -> Field:
        for f in self.fields:
            if f.id == field_id:
                return f
        raise UnknownFieldError(self.id, field_id)

    def has_field(self, field_id: str) -> bool:
        return any(f.id == field_id for f in self.fields)


class FieldCatalog:
    """
    Read-only catalog of data sources.

    Contract:
        Built once (typically from ``catalog.yaml``) and shared; never
        mutated afterwards, so it is safe to use from many threads.
    """

    def __init__(self, sources: Iterable[DataSource]):
        self._sources: dict[str, DataSource] = {}
        for source in sources:
            if source.id in self._sources:
                raise ValueError(f"Duplicate data source {source.id!r}")
            self._sources[source.id] = source

    @classmethod
    def from_definition(cls, definition: CatalogDefinition) -> FieldCatalog:
        """Build from the parsed YAML catalog."""
        return cls(
            DataSource(
                id=src.id,
                display_name=src.display_name,
                date_field=src.date_field,
                fields=tuple(
                    Field(
                        id=f.id,
                        name=f.name,
                        source_table=f.source_table,
                        display_name=f.display_name,
                        type=FieldType(f.type),
                        derived=f.derived,
                    )
                    for f in src.fields
                ),
            )
            for src in definition.data_sources
        )

    @property
    def data_source_ids(self) -> tuple[str, ...]:
        return tuple(self._sources)

    def data_source(self, data_source_id: str) -> DataSource:
        try:
            return self._sources[data_source_id]
        except KeyError:
            raise UnknownDataSourceError(data_source_id) from None

    def fields_for(self, data_source_id: str) -> tuple[Field, ...]:
        """All fields of a data source, in display order."""
        return self.data_source(data_source_id).fields

    def field(self, data_source_id: str, field_id: str) -> Field:
        return self.data_source(data_source_id).field(field_id)

    @staticmethod
    def operators_for(field_type: FieldType | str) -> tuple[Operator, ...]:
        return operators_for(field_type)

    @staticmethod
    def check_operator(field: Field, operator: Operator | str) -> Operator:
        """
        Resolve ``operator`` and verify it is legal for ``field``.

        Raises:
            InvalidFilterError: unknown operator, or not legal for the type.
        """
        try:
            op = Operator(operator)
        except ValueError:
            raise InvalidFilterError(
                field.id, str(operator), field.type.value, reason="unknown operator"
            ) from None
        if not is_legal(op, field.type):
            raise InvalidFilterError(field.id, op.value, field.type.value)
        return op
