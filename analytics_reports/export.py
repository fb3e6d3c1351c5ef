"""
Export utilities for custom reports.

Renders a CustomReportResult as CSV or TSV text with display-name headers,
one line per row in result order.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from analytics_kernel.domain.values import Money
from analytics_kernel.logging_config import get_logger
from analytics_engines.query import CustomReportResult, FieldCatalog

logger = get_logger("reports.export")


class ExportFormat(str, Enum):
    CSV = "csv"
    TSV = "tsv"


CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.TSV: "text/tab-separated-values",
}

_DIALECTS = {
    ExportFormat.CSV: "excel",
    ExportFormat.TSV: "excel-tab",
}


def format_value(value: Any) -> str:
    """Format a cell value for export."""
    if value is None:
        return ""
    if isinstance(value, Money):
        return str(value.round().amount)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def export_custom_report(
    result: CustomReportResult,
    catalog: FieldCatalog | None = None,
    fmt: ExportFormat | str = ExportFormat.CSV,
) -> str:
    """
    Render ``result`` as delimited text.

    Args:
        result: A composed custom report.
        catalog: Catalog to resolve column headers from; the result's own
            field definitions are used when omitted.
        fmt: ``"csv"`` or ``"tsv"``.

    Returns:
        The file content, ``\\r\\n`` line endings (Excel dialect).
    """
    export_format = ExportFormat(fmt)
    fields = result.fields
    if catalog is not None:
        source = result.specification.data_source
        fields = tuple(catalog.field(source, f.id) for f in fields)

    buffer = io.StringIO()
    writer = csv.writer(buffer, dialect=_DIALECTS[export_format])
    writer.writerow([f.display_name for f in fields])
    for row in result.rows:
        writer.writerow([format_value(row.get(f.id)) for f in fields])

    logger.info(
        "custom_report_exported",
        extra={
            "format": export_format.value,
            "data_source": result.specification.data_source,
            "row_count": result.row_count,
        },
    )
    return buffer.getvalue()
