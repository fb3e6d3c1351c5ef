"""
Report Envelope Models (``analytics_reports.models``).

Responsibility
--------------
Frozen value objects wrapping an engine report with the metadata of the
request that produced it (report id, type, generation timestamp, currency,
as-of date and parameters), plus ``to_dict`` for JSON serialization.

Architecture position
---------------------
**Reports layer** -- pure data definitions with ZERO I/O.  Built by
``ReportingService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``generated_at`` comes from the service's injected clock, never from
  ``datetime.now()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from analytics_reports.render import (
    render_aging,
    render_custom,
    render_depreciation,
    render_inventory,
    render_statement,
    render_value,
)


class ReportType(str, Enum):
    """Reports the service can produce."""

    CUSTOM = "custom"
    AP_AGING = "ap_aging"
    AR_AGING = "ar_aging"
    CUSTOMER_STATEMENT = "customer_statement"
    VENDOR_STATEMENT = "vendor_statement"
    DEPRECIATION = "depreciation"
    INVENTORY_VALUATION = "inventory_valuation"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every generated report."""

    report_id: UUID
    report_type: ReportType
    generated_at: datetime
    as_of_date: date
    currency: str | None = None
    snapshot_taken_at: datetime | None = None
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportId": str(self.report_id),
            "reportType": self.report_type.value,
            "generatedAt": self.generated_at.isoformat(),
            "asOfDate": self.as_of_date.isoformat(),
            "currency": self.currency,
            "snapshotTakenAt": render_value(self.snapshot_taken_at),
            "parameters": render_value(self.parameters),
        }


_RENDERERS = {
    ReportType.AP_AGING: render_aging,
    ReportType.AR_AGING: render_aging,
    ReportType.CUSTOMER_STATEMENT: render_statement,
    ReportType.VENDOR_STATEMENT: render_statement,
    ReportType.DEPRECIATION: render_depreciation,
    ReportType.INVENTORY_VALUATION: render_inventory,
}


@dataclass(frozen=True)
class GeneratedReport:
    """
    An engine report plus its request metadata.

    ``report`` is the engine's typed result (``AgingReport``,
    ``Statement``, ``DepreciationReport``, ``InventoryValuationReport`` or
    ``CustomReportResult``); callers needing values use it directly, and
    ``to_dict`` renders the published JSON contract.
    """

    metadata: ReportMetadata
    report: Any

    @property
    def report_type(self) -> ReportType:
        return self.metadata.report_type

    def to_dict(self) -> dict[str, Any]:
        if self.metadata.report_type == ReportType.CUSTOM:
            payload = render_custom(self.report, self.metadata.generated_at)
        else:
            payload = _RENDERERS[self.metadata.report_type](self.report)
        payload["metadata"] = self.metadata.to_dict()
        return payload
