"""
Report rendering (``analytics_reports.render``).

Responsibility
--------------
Pure transformation functions from engine report types to the plain,
camelCase dictionaries callers serialize to JSON.  Field names follow the
published report contracts (``APAgingReport``, ``ARAgingReport``,
``CustomerStatement``, ``VendorStatement``, ``DepreciationReport``,
``InventoryValuationReport``, ``CustomReport``).

Architecture position
---------------------
**Reports layer** -- pure functions with ZERO I/O, called by
``GeneratedReport.to_dict``.

Invariants enforced
-------------------
* Monetary amounts are rendered as strings of the amount rounded half-up
  to the currency's places (``"1240.00"``); never ``float``.
* Other ``Decimal`` values are rendered as their exact string.
* Dates render as ISO ``YYYY-MM-DD``; ``None`` is preserved.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from analytics_kernel.domain.periods import DateRange
from analytics_kernel.domain.records import EntityRole
from analytics_kernel.domain.values import Money
from analytics_engines.aging import AgingReport, BucketAmounts, EntityAging
from analytics_engines.depreciation import AssetDepreciation, DepreciationReport, DepreciationScheduleEntry
from analytics_engines.query import CustomReportResult
from analytics_engines.statements import Statement
from analytics_engines.valuation import InventoryValuationReport, InventoryValuationResult

_DEPRECIATION_METHOD_LABELS = {
    "straight_line": "Straight-line",
    "declining_balance": "Declining Balance",
}


def money(value: Money | None) -> str | None:
    """Display form of a Money amount."""
    if value is None:
        return None
    return str(value.round().amount)


def day(value: date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def render_value(obj: Any) -> Any:
    """
    Convert any value (including nested dataclasses) to a JSON-safe value.

    Handles Money, Decimal, UUID, date/datetime, Enum, DateRange, mappings,
    sequences and dataclasses; ``None`` is preserved.
    """
    if obj is None:
        return None
    if isinstance(obj, Money):
        return money(obj)
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, DateRange):
        return obj.to_dict()
    if isinstance(obj, Mapping):
        return {str(k): render_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [render_value(item) for item in obj]
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_value(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float)):
        return obj
    return str(obj)


def camel_key(label: str) -> str:
    """``"Medical Equipment"`` -> ``"medicalEquipment"``."""
    words = [w for w in re.split(r"[^0-9A-Za-z]+", label) if w]
    if not words:
        return ""
    return words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])


# =========================================================================
# Aging
# =========================================================================


def _buckets(buckets: BucketAmounts) -> dict[str, str | None]:
    return {
        "current": money(buckets.current),
        "days1to30": money(buckets.days_1_30),
        "days31to60": money(buckets.days_31_60),
        "days61to90": money(buckets.days_61_90),
        "over90": money(buckets.over_90),
    }


def _entity_row(row: EntityAging, noun: str) -> dict[str, Any]:
    return {
        f"{noun}Id": row.entity_id,
        f"{noun}Name": row.entity_name,
        f"{noun}Type": row.entity_type,
        "totalAmount": money(row.total_amount),
        **_buckets(row.buckets),
        "oldestInvoiceDate": day(row.oldest_invoice_date),
        "invoiceCount": row.invoice_count,
        "averagePaymentDays": render_value(row.average_payment_days),
        "creditLimit": money(row.credit_limit),
        "lastPaymentDate": day(row.last_payment_date),
        "paymentTerms": row.payment_terms,
    }


def render_aging(report: AgingReport) -> dict[str, Any]:
    """``APAgingReport`` for vendors, ``ARAgingReport`` for customers."""
    noun, plural, total_key = (
        ("vendor", "vendors", "totalPayables")
        if report.role == EntityRole.VENDOR
        else ("customer", "customers", "totalReceivables")
    )
    capital = plural.capitalize()
    summary = report.summary
    return {
        "reportDate": day(report.as_of_date),
        "currency": report.currency,
        "summary": {
            f"total{capital}": summary.total_entities,
            total_key: money(summary.total_amount),
            **_buckets(summary.buckets),
            "averagePaymentDays": render_value(summary.average_payment_days),
            f"critical{capital}": summary.critical_entities,
        },
        plural: [_entity_row(row, noun) for row in report.entities],
        "agingBuckets": [
            {
                "bucket": analysis.bucket.label,
                "amount": money(analysis.amount),
                "percentage": str(analysis.percentage),
                f"{noun}Count": analysis.entity_count,
            }
            for analysis in report.bucket_analysis
        ],
        f"{noun}Types": [
            {
                "type": breakdown.entity_type,
                f"{noun}Count": breakdown.entity_count,
                "totalAmount": money(breakdown.total_amount),
                "averageAmount": money(breakdown.average_amount),
            }
            for breakdown in report.type_breakdown
        ],
        "paymentWindow": render_value(report.payment_window),
    }


# =========================================================================
# Statements
# =========================================================================


def render_statement(statement: Statement) -> dict[str, Any]:
    """``CustomerStatement`` or ``VendorStatement``."""
    is_vendor = statement.role == EntityRole.VENDOR
    entity = statement.entity
    summary = statement.summary
    return {
        "vendor" if is_vendor else "customer": {
            "id": entity.entity_id,
            "name": entity.name,
            "type": entity.entity_type,
            "paymentTerms": entity.payment_terms,
        },
        "statementPeriod": statement.period.to_dict(),
        "currency": statement.currency,
        "summary": {
            "beginningBalance": money(summary.beginning_balance),
            "totalBilled" if is_vendor else "totalInvoiced": money(summary.total_invoiced),
            "totalPayments": money(summary.total_payments),
            "totalAdjustments": money(summary.total_adjustments),
            "endingBalance": money(summary.ending_balance),
        },
        "transactions": [
            {
                "id": line.document_id,
                "date": day(line.transaction_date),
                "type": line.kind.value.capitalize(),
                "reference": line.reference,
                "description": line.description,
                "amount": money(line.amount),
                "balance": money(line.balance),
            }
            for line in statement.lines
        ],
        "aging": _buckets(statement.aging),
    }


# =========================================================================
# Depreciation
# =========================================================================


def _schedule(entries: tuple[DepreciationScheduleEntry, ...]) -> list[dict[str, Any]]:
    return [
        {
            "year": e.year,
            "beginningValue": money(e.beginning_value),
            "depreciation": money(e.depreciation),
            "accumulatedDepreciation": money(e.accumulated_depreciation),
            "endingValue": money(e.ending_value),
        }
        for e in entries
    ]


def _asset_row(row: AssetDepreciation) -> dict[str, Any]:
    asset = row.asset
    return {
        "assetId": asset.asset_id,
        "assetName": asset.name,
        "assetType": asset.category,
        "purchaseDate": day(asset.purchase_date),
        "purchasePrice": money(asset.purchase_price),
        "depreciationMethod": _DEPRECIATION_METHOD_LABELS[asset.method.value],
        "usefulLife": asset.useful_life_months,
        "salvageValue": money(asset.residual_value),
        "currentBookValue": money(row.current_book_value),
        "accumulatedDepreciation": money(row.accumulated_depreciation),
        "annualDepreciation": money(row.annual_depreciation),
        "monthlyDepreciation": money(row.monthly_depreciation),
        "remainingLife": row.remaining_life_months,
        "fullyDepreciated": row.is_fully_depreciated,
        "depreciationSchedule": _schedule(row.schedule),
        "projectedSchedule": _schedule(row.projected_schedule),
    }


def render_depreciation(report: DepreciationReport) -> dict[str, Any]:
    summary = report.summary
    return {
        "reportPeriod": report.period.to_dict(),
        "currency": report.currency,
        "summary": {
            "totalAssets": summary.total_assets,
            "totalOriginalCost": money(summary.total_original_cost),
            "totalCurrentValue": money(summary.total_current_value),
            "totalAccumulatedDepreciation": money(summary.total_accumulated_depreciation),
            "monthlyDepreciationExpense": money(summary.monthly_depreciation_expense),
            "annualDepreciationExpense": money(summary.annual_depreciation_expense),
        },
        "assets": [_asset_row(row) for row in report.assets],
        "assetTypes": {
            camel_key(c.category): {
                "count": c.count,
                "originalCost": money(c.original_cost),
                "currentValue": money(c.current_value),
            }
            for c in report.categories
        },
    }


# =========================================================================
# Inventory valuation
# =========================================================================


def _item_row(result: InventoryValuationResult) -> dict[str, Any]:
    item = result.item
    return {
        "itemId": item.item_id,
        "itemCode": item.item_code,
        "itemName": item.name,
        "category": item.category,
        "location": item.location,
        "quantityOnHand": str(item.quantity_on_hand),
        "unitOfMeasure": item.unit_of_measure,
        "unitCost": money(item.standard_cost),
        "averageCost": money(result.average_unit_cost),
        "fifoValue": money(result.fifo_value),
        "lifoValue": money(result.lifo_value),
        "averageValue": money(result.average_value),
        "standardCost": money(item.standard_cost),
        "standardValue": money(result.standard_value),
        "standardVariance": money(result.standard_variance),
        "valuationMethod": result.selected_method.value,
        "totalValue": money(result.selected_value),
        "lastReceived": day(item.last_received),
        "reorderLevel": str(item.reorder_level),
        "maxLevel": render_value(item.max_level),
        "supplier": item.supplier,
        "status": result.stock_status.value,
        "lotNumbers": [
            {
                "lotNumber": lot.lot_number,
                "quantity": str(lot.quantity_received),
                "unitCost": money(lot.unit_cost),
                "receivedDate": day(lot.received_date),
                "expirationDate": day(lot.expiration_date),
            }
            for lot in item.lots
        ],
        "expiringLots": [lot.lot_number for lot in result.expiring_lots],
    }


def render_inventory(report: InventoryValuationReport) -> dict[str, Any]:
    summary = report.summary
    return {
        "reportPeriod": {"asOfDate": day(report.as_of_date)},
        "currency": report.currency,
        "summary": {
            "totalItems": summary.total_items,
            "totalQuantity": str(summary.total_quantity),
            "totalValueFIFO": money(summary.total_value_fifo),
            "totalValueLIFO": money(summary.total_value_lifo),
            "totalValueAverage": money(summary.total_value_average),
            "totalValueStandard": money(summary.total_value_standard),
            "lowStockItems": summary.low_stock_items,
            "outOfStockItems": summary.out_of_stock_items,
            "overstockItems": summary.overstock_items,
        },
        "items": [_item_row(r) for r in report.items],
        "categoryBreakdown": {
            camel_key(c.category): {
                "items": c.item_count,
                "quantity": str(c.quantity),
                "value": money(c.value),
            }
            for c in report.categories
        },
        "valuationMethods": {
            m.method.value: {
                "totalValue": money(m.total_value),
                "variance": money(m.variance),
            }
            for m in report.methods
        },
    }


# =========================================================================
# Custom reports
# =========================================================================


def render_custom(result: CustomReportResult, generated_at: datetime) -> dict[str, Any]:
    spec = result.specification
    return {
        "name": spec.name,
        "dataSource": spec.data_source,
        "columns": [{"fieldId": f.id, "displayName": f.display_name, "type": f.type.value} for f in result.fields],
        "rows": [{key: render_value(value) for key, value in row.items()} for row in result.rows],
        "rowCount": result.row_count,
        "summary": {
            "totalRows": result.row_count,
            "matchedRows": result.matched_rows,
            "filters": [render_value(f.to_dict()) for f in spec.filters],
            "sorts": [s.to_dict() for s in spec.sorts],
            "dateRange": render_value(spec.date_range),
            "groupBy": spec.group_by,
            "generatedAt": generated_at.isoformat(),
        },
    }


__all__ = [
    "camel_key",
    "day",
    "money",
    "render_aging",
    "render_custom",
    "render_depreciation",
    "render_inventory",
    "render_statement",
    "render_value",
]
