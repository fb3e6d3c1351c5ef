"""
Query - custom report composition over a record snapshot.

    catalog    typed fields per data source and operator legality
    filters    filter clauses, value coercion and typed comparison
    sources    per-source row materialization and derived values
    composer   validate, fetch, filter, group, sort, limit, project
"""

from analytics_engines.query.catalog import (
    DataSource,
    Field,
    FieldCatalog,
    FieldType,
    Operator,
    is_legal,
    operators_for,
)
from analytics_engines.query.composer import (
    CompiledQuery,
    CustomReportResult,
    QueryComposer,
    ReportRow,
    ReportSpecification,
    SortClause,
    SortDirection,
)
from analytics_engines.query.filters import CompiledFilter, FilterClause, coerce_filter_value
from analytics_engines.query.sources import MATERIALIZERS, SourceContext, materializer_for

__all__ = [
    "CompiledFilter",
    "CompiledQuery",
    "CustomReportResult",
    "DataSource",
    "Field",
    "FieldCatalog",
    "FieldType",
    "FilterClause",
    "MATERIALIZERS",
    "Operator",
    "QueryComposer",
    "ReportRow",
    "ReportSpecification",
    "SortClause",
    "SortDirection",
    "SourceContext",
    "coerce_filter_value",
    "is_legal",
    "materializer_for",
    "operators_for",
]
