"""
analytics_reports -- report generation over record snapshots.

Responsibility:
    The public entry point for callers: ``ReportingService`` turns a
    RecordStore plus configuration into typed, serializable reports, and
    ``export_custom_report`` renders custom reports as CSV/TSV.

Architecture position:
    Reports -- top layer.  Imports analytics_config, analytics_engines and
    analytics_kernel; nothing imports it.

Usage:
    from analytics_kernel.snapshot import InMemoryRecordStore
    from analytics_reports import ReportingService

    service = ReportingService(InMemoryRecordStore(...))
    report = service.ap_aging(as_of_date="2024-12-31")
    payload = report.to_dict()
"""

from analytics_reports.export import ExportFormat, export_custom_report, format_value
from analytics_reports.models import GeneratedReport, ReportMetadata, ReportType
from analytics_reports.render import render_value
from analytics_reports.service import ReportingService

__all__ = [
    "ExportFormat",
    "GeneratedReport",
    "ReportMetadata",
    "ReportType",
    "ReportingService",
    "export_custom_report",
    "format_value",
    "render_value",
]
