"""
Module: analytics_engines.query.composer
Responsibility:
    Compose and execute custom reports: validate a ReportSpecification
    against the field catalog, materialize rows from a snapshot, filter,
    group, sort, limit and project them.

Architecture position:
    Engines > Query -- pure over an immutable RecordSnapshot.  The
    reporting service supplies the snapshot; the composer never reads a
    store and never touches the clock.

Invariants enforced:
    - Validation (data source, fields, operators, filter values, sort
      directions, limit) completes before any row is materialized.
    - Sorting is stable: clause order is priority, ties keep input order,
      None values always sort last regardless of direction.
    - Duplicate sort clauses on one field: the later direction wins at the
      earlier clause's position.
    - Grouped numeric and currency fields are summed; mixed currencies in a
      sum, a sort column or a group key raise CurrencyMismatchError.
    - Same specification and snapshot give the same rows in the same order.
    - Cancellation is polled between stages and every ``check_interval``
      rows; a cancelled run returns nothing.

Failure modes:
    - UnknownDataSourceError, UnknownFieldError, InvalidFilterError,
      InvalidDateRangeError, InvalidSpecificationError on a bad spec.
    - CurrencyMismatchError as above.
    - ReportCancelledError when the token is cancelled or times out.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from analytics_kernel.cancellation import CancellationToken
from analytics_kernel.domain.periods import DateRange
from analytics_kernel.domain.values import Money
from analytics_kernel.exceptions import CurrencyMismatchError, InvalidSpecificationError
from analytics_kernel.logging_config import get_logger
from analytics_kernel.snapshot import RecordSnapshot
from analytics_engines.depreciation import DepreciationEngine
from analytics_engines.query.catalog import DataSource, Field, FieldCatalog, FieldType
from analytics_engines.query.filters import CompiledFilter, FilterClause
from analytics_engines.query.sources import RawRow, SourceContext, materializer_for
from analytics_engines.tracer import traced_engine
from analytics_engines.valuation import InventoryValuationEngine

logger = get_logger("engines.query")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class SortClause:
    field_id: str
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SortClause:
        field_id = data.get("fieldId", data.get("field_id"))
        raw_direction = data.get("direction", SortDirection.ASC.value)
        try:
            direction = SortDirection(str(raw_direction).lower())
        except ValueError:
            raise InvalidSpecificationError(
                f"sort direction for {field_id!r} must be 'asc' or 'desc', got {raw_direction!r}"
            ) from None
        return cls(field_id=field_id, direction=direction)

    def to_dict(self) -> dict[str, str]:
        return {"fieldId": self.field_id, "direction": self.direction.value}


@dataclass(frozen=True)
class ReportSpecification:
    """
    An immutable custom report request.

    ``from_dict`` accepts the camelCase wire form::

        {"dataSource": "customers",
         "selectedFields": ["customer_name", "total_sales"],
         "filters": [{"fieldId": "total_sales", "operator": "greater_than", "value": 1000}],
         "sorts": [{"fieldId": "total_sales", "direction": "desc"}],
         "dateRange": {"startDate": "2024-01-01", "endDate": "2024-12-31"},
         "groupBy": null, "limit": 50}
    """

    data_source: str
    selected_fields: tuple[str, ...]
    filters: tuple[FilterClause, ...] = ()
    sorts: tuple[SortClause, ...] = ()
    date_range: DateRange | None = None
    group_by: str | None = None
    limit: int | None = None
    name: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "selected_fields", tuple(self.selected_fields))
        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "sorts", tuple(self.sorts))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReportSpecification:
        data_source = data.get("dataSource", data.get("data_source"))
        if not data_source:
            raise InvalidSpecificationError("dataSource is required")
        selected = data.get("selectedFields", data.get("selected_fields")) or ()
        if isinstance(selected, str):
            raise InvalidSpecificationError("selectedFields must be a list of field ids")
        raw_range = data.get("dateRange", data.get("date_range"))
        if isinstance(raw_range, DateRange) or raw_range is None:
            date_range = raw_range
        else:
            date_range = DateRange.from_dict(raw_range)
        return cls(
            data_source=data_source,
            selected_fields=tuple(selected),
            filters=tuple(
                f if isinstance(f, FilterClause) else FilterClause.from_dict(f)
                for f in data.get("filters") or ()
            ),
            sorts=tuple(
                s if isinstance(s, SortClause) else SortClause.from_dict(s)
                for s in data.get("sorts") or ()
            ),
            date_range=date_range,
            group_by=data.get("groupBy", data.get("group_by")),
            limit=data.get("limit"),
            name=data.get("name", ""),
            description=data.get("description", ""),
        )


class ReportRow(Mapping[str, Any]):
    """Read-only row of projected values, keyed by field id in selection order."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ReportRow({self._values!r})"


@dataclass(frozen=True)
class CustomReportResult:
    """Rows of a custom report plus the validated request that produced them."""

    specification: ReportSpecification
    fields: tuple[Field, ...]
    rows: tuple[ReportRow, ...]
    matched_rows: int

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class CompiledQuery:
    """A specification resolved against the catalog; safe to execute."""

    specification: ReportSpecification
    source: DataSource
    selected: tuple[Field, ...]
    pushdown: tuple[CompiledFilter, ...]
    residual: tuple[CompiledFilter, ...]
    sorts: tuple[tuple[Field, SortDirection], ...]
    group_by: Field | None = None
    filter_count: int = 0


class QueryComposer:
    """
    Custom report composer.

    Contract:
        ``run`` is a pure function of (specification, snapshot): the
        composer holds only the catalog and engines, all read-only.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        depreciation: DepreciationEngine | None = None,
        valuation: InventoryValuationEngine | None = None,
        default_currency: str = "USD",
        check_interval: int = 500,
    ):
        if check_interval <= 0:
            raise ValueError(f"check_interval must be positive, got {check_interval}")
        self._catalog = catalog
        self._depreciation = depreciation or DepreciationEngine()
        self._valuation = valuation or InventoryValuationEngine()
        self._default_currency = default_currency
        self._check_interval = check_interval

    @property
    def catalog(self) -> FieldCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def compile(self, spec: ReportSpecification) -> CompiledQuery:
        """
        Validate ``spec`` against the catalog without reading any data.

        Raises:
            UnknownDataSourceError, UnknownFieldError, InvalidFilterError,
            InvalidSpecificationError.
        """
        source = self._catalog.data_source(spec.data_source)

        if not spec.selected_fields:
            raise InvalidSpecificationError("at least one field must be selected")
        if len(set(spec.selected_fields)) != len(spec.selected_fields):
            raise InvalidSpecificationError("selectedFields contains duplicates")
        selected = tuple(source.field(fid) for fid in spec.selected_fields)

        if spec.limit is not None and (
            isinstance(spec.limit, bool) or not isinstance(spec.limit, int) or spec.limit < 0
        ):
            raise InvalidSpecificationError(f"limit must be a non-negative integer, got {spec.limit!r}")

        compiled = [CompiledFilter.compile(source.field(f.field_id), f) for f in spec.filters]

        # Later clause wins, earlier position kept (dict insertion order).
        directions: dict[str, SortDirection] = {}
        for clause in spec.sorts:
            source.field(clause.field_id)
            try:
                directions[clause.field_id] = SortDirection(clause.direction)
            except ValueError:
                raise InvalidSpecificationError(
                    f"sort direction for {clause.field_id!r} must be 'asc' or 'desc'"
                ) from None

        group_by = source.field(spec.group_by) if spec.group_by else None

        return CompiledQuery(
            specification=spec,
            source=source,
            selected=selected,
            pushdown=tuple(f for f in compiled if not f.field.derived),
            residual=tuple(f for f in compiled if f.field.derived),
            sorts=tuple((source.field(fid), d) for fid, d in directions.items()),
            group_by=group_by,
            filter_count=len(compiled),
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @traced_engine("custom_report", "1.0", fingerprint_fields=("spec", "as_of_date"))
    def run(
        self,
        spec: ReportSpecification,
        snapshot: RecordSnapshot,
        cancellation: CancellationToken | None = None,
        as_of_date: date | None = None,
    ) -> CustomReportResult:
        """
        Execute ``spec`` against ``snapshot``.

        Args:
            spec: The report request.
            snapshot: Records to report on; read, never modified.
            cancellation: Optional token polled while the report runs.
            as_of_date: Valuation date for derived values when ``spec`` has
                no date range (defaults to the snapshot date).
        """
        query = self.compile(spec)
        token = cancellation or CancellationToken()
        token.raise_if_cancelled("validate")

        context = SourceContext(
            as_of_date=as_of_date or snapshot.taken_at.date(),
            date_range=spec.date_range,
            default_currency=self._default_currency,
            depreciation=self._depreciation,
            valuation=self._valuation,
        )
        materializer = materializer_for(query.source.id)

        rows: list[dict[str, Any]] = []
        for index, raw in enumerate(materializer.rows(query.source, snapshot, context)):
            self._checkpoint(token, "fetch", index)
            if all(f.apply(raw.values) for f in query.pushdown):
                rows.append(self._complete(materializer, raw, context))
        token.raise_if_cancelled("fetch")

        if query.residual:
            kept = []
            for index, row in enumerate(rows):
                self._checkpoint(token, "filter", index)
                if all(f.apply(row) for f in query.residual):
                    kept.append(row)
            rows = kept
            token.raise_if_cancelled("filter")

        if query.group_by is not None:
            rows = self._group(rows, query.group_by, query.source, token)
            token.raise_if_cancelled("group")

        rows = self._sort(rows, query.sorts)
        token.raise_if_cancelled("sort")

        matched = len(rows)
        if spec.limit is not None:
            rows = rows[: spec.limit]

        projected = []
        for index, row in enumerate(rows):
            self._checkpoint(token, "project", index)
            projected.append(ReportRow({f.id: row.get(f.id) for f in query.selected}))
        token.raise_if_cancelled("project")

        logger.info(
            "custom_report_composed",
            extra={
                "data_source": query.source.id,
                "selected_fields": len(query.selected),
                "filters": query.filter_count,
                "pushdown_filters": len(query.pushdown),
                "sorts": len(query.sorts),
                "group_by": query.group_by.id if query.group_by else None,
                "matched_rows": matched,
                "row_count": len(projected),
            },
        )
        return CustomReportResult(
            specification=spec,
            fields=query.selected,
            rows=tuple(projected),
            matched_rows=matched,
        )

    def _checkpoint(self, token: CancellationToken, stage: str, index: int) -> None:
        if index % self._check_interval == 0:
            token.raise_if_cancelled(stage)

    @staticmethod
    def _complete(materializer, raw: RawRow, context: SourceContext) -> dict[str, Any]:
        materializer.derive(raw, context)
        return raw.values

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def _group(
        self,
        rows: list[dict[str, Any]],
        group_by: Field,
        source: DataSource,
        token: CancellationToken,
    ) -> list[dict[str, Any]]:
        if group_by.type == FieldType.CURRENCY:
            _single_currency((r.get(group_by.id) for r in rows), "group")

        summed = [f for f in source.fields if f.type.is_numeric and f.id != group_by.id]
        groups: dict[Any, list[dict[str, Any]]] = {}
        for index, row in enumerate(rows):
            self._checkpoint(token, "group", index)
            groups.setdefault(row.get(group_by.id), []).append(row)

        result = []
        for members in groups.values():
            merged = dict(members[0])
            for f in summed:
                merged[f.id] = _sum_values([m.get(f.id) for m in members], f)
            result.append(merged)
        return result

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    @staticmethod
    def _sort(
        rows: list[dict[str, Any]],
        sorts: Sequence[tuple[Field, SortDirection]],
    ) -> list[dict[str, Any]]:
        # Apply the lowest-priority clause first; stability preserves it
        # within ties of the higher-priority clauses.
        for f, direction in reversed(sorts):
            present = [r for r in rows if r.get(f.id) is not None]
            missing = [r for r in rows if r.get(f.id) is None]
            if f.type == FieldType.CURRENCY:
                _single_currency((r[f.id] for r in present), "sort")
            present.sort(key=_sort_key(f), reverse=direction == SortDirection.DESC)
            rows = present + missing
        return rows


def _sort_key(f: Field):
    if f.type == FieldType.TEXT:
        return lambda row: (str(row[f.id]).casefold(), str(row[f.id]))

    def key(row: dict[str, Any]) -> Any:
        value = row[f.id]
        return value.amount if isinstance(value, Money) else value

    return key


def _single_currency(values, operation: str) -> None:
    codes = sorted({v.currency.code for v in values if isinstance(v, Money)})
    if len(codes) > 1:
        raise CurrencyMismatchError(expected=codes[0], received=codes[1], operation=operation)


def _sum_values(values: list[Any], f: Field) -> Any:
    present = [v for v in values if v is not None]
    if not present:
        return None
    if f.type == FieldType.CURRENCY:
        return Money.sum(present, present[0].currency)
    return sum(present, Decimal("0"))
