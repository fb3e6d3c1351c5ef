"""
Reporting Service (``analytics_reports.service``).

Responsibility
--------------
Orchestrates report generation: custom reports, AP/AR aging, customer and
vendor statements, depreciation and inventory valuation.  It takes one
snapshot from a ``RecordStore`` per request, resolves request defaults
from ``AnalyticsConfig`` (as-of dates, payment window, currency) and
delegates every calculation to the pure engines.

Architecture position
---------------------
**Reports layer** -- thin orchestration.  The only layer that reads the
clock, talks to a RecordStore and knows about ``analytics_config``.
Constructor: ``store`` + ``config`` + ``catalog`` + ``clock``.

Invariants enforced
-------------------
* Exactly one ``RecordStore.snapshot()`` per report; never re-queried
  mid-computation.
* Custom report specifications are validated BEFORE the snapshot is
  taken, so an invalid request never touches the store.
* Read-only: nothing is written back.

Failure modes
-------------
* Engine and validation errors propagate unchanged (see
  ``analytics_kernel.exceptions``).
* ``InvalidRecordError`` for a statement of an unknown entity or an entity
  of the other role.

Audit relevance
---------------
Every report carries a ``ReportMetadata`` (report id, generation time,
parameters) and is logged as ``report_generated`` with the report id bound
into the ``LogContext``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any
from uuid import uuid4

from analytics_config import AnalyticsConfig, PaymentWindowPolicy, get_default_config, load_catalog
from analytics_kernel.cancellation import CancellationToken
from analytics_kernel.domain.clock import Clock, SystemClock
from analytics_kernel.domain.periods import DateRange, parse_date
from analytics_kernel.domain.records import EntityRole
from analytics_kernel.exceptions import InvalidRecordError
from analytics_kernel.logging_config import LogContext, get_logger
from analytics_kernel.snapshot import RecordSnapshot, RecordStore
from analytics_engines.aging import AgingEngine, AgingSortKey
from analytics_engines.depreciation import DepreciationEngine, DepreciationSortKey
from analytics_engines.query import FieldCatalog, QueryComposer, ReportSpecification
from analytics_engines.statements import StatementEngine
from analytics_engines.valuation import InventorySortKey, InventoryValuationEngine
from analytics_reports.models import GeneratedReport, ReportMetadata, ReportType

logger = get_logger("reports.service")


class ReportingService:
    """
    Report generation service.

    Contract
    --------
    * Every public method returns a ``GeneratedReport`` wrapping the
      engine's typed report; ``to_dict()`` gives the JSON contract.
    * Safe to share between threads: the service holds only frozen
      configuration and stateless engines.

    Non-goals
    ---------
    * No caching of snapshots or results.
    * No report scheduling or delivery.
    """

    def __init__(
        self,
        store: RecordStore,
        config: AnalyticsConfig | None = None,
        catalog: FieldCatalog | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._config = config or get_default_config()
        self._clock = clock or SystemClock()
        self._catalog = catalog or FieldCatalog.from_definition(load_catalog())

        calendar = self._config.fiscal_calendar
        currency = self._config.default_currency
        self._aging = AgingEngine(calendar=calendar, default_currency=currency)
        self._statements = StatementEngine(aging_engine=self._aging, default_currency=currency)
        self._depreciation = DepreciationEngine(
            calendar=calendar,
            declining_balance_factor=self._config.declining_balance_factor,
        )
        self._valuation = InventoryValuationEngine(
            default_method=self._config.default_valuation_method,
            expiring_lot_days=self._config.expiring_lot_days,
        )
        self._composer = QueryComposer(
            self._catalog,
            depreciation=self._depreciation,
            valuation=self._valuation,
            default_currency=currency,
            check_interval=self._config.cancellation_check_interval,
        )

        logger.info(
            "reporting_service_initialized",
            extra={
                "default_currency": currency,
                "fiscal_year_start_month": self._config.fiscal_year_start_month,
                "data_sources": list(self._catalog.data_source_ids),
            },
        )

    @property
    def catalog(self) -> FieldCatalog:
        return self._catalog

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _as_of(self, as_of_date: date | str | None) -> date:
        return parse_date(as_of_date) if as_of_date is not None else self._clock.today()

    def payment_window(self, as_of_date: date) -> DateRange:
        """Paid-date window feeding ``averagePaymentDays`` under the configured policy."""
        policy = self._config.payment_window
        if policy == PaymentWindowPolicy.TRAILING_DAYS:
            start = as_of_date - timedelta(days=self._config.payment_window_days - 1)
            return DateRange(start, as_of_date)
        if policy == PaymentWindowPolicy.ALL_TIME:
            return DateRange(date.min, as_of_date)
        return self._config.fiscal_calendar.year_to_date(as_of_date)

    def _generate(
        self,
        report_type: ReportType,
        as_of_date: date,
        parameters: dict[str, Any],
        build,
    ) -> GeneratedReport:
        """Take one snapshot, run ``build(snapshot)`` and wrap the result."""
        report_id = uuid4()
        started = self._clock.monotonic()
        with LogContext.bind(report_id=str(report_id), report_type=report_type.value):
            snapshot = self._store.snapshot()
            report = build(snapshot)
            metadata = ReportMetadata(
                report_id=report_id,
                report_type=report_type,
                generated_at=self._clock.now(),
                as_of_date=as_of_date,
                currency=getattr(report, "currency", None),
                snapshot_taken_at=snapshot.taken_at,
                parameters=parameters,
            )
            logger.info(
                "report_generated",
                extra={
                    "as_of_date": as_of_date.isoformat(),
                    "duration_ms": round((self._clock.monotonic() - started) * 1000, 3),
                },
            )
        return GeneratedReport(metadata=metadata, report=report)

    # =========================================================================
    # Custom reports
    # =========================================================================

    def custom_report(
        self,
        specification: ReportSpecification | Mapping[str, Any],
        cancellation: CancellationToken | None = None,
        timeout_seconds: float | None = None,
        as_of_date: date | str | None = None,
    ) -> GeneratedReport:
        """
        Run a custom report.

        Args:
            specification: A ReportSpecification or its camelCase dict form.
            cancellation: Token the caller may cancel from another thread.
            timeout_seconds: Cancel automatically after this long (measured
                on the service clock).  Ignored when ``cancellation`` is
                given.
            as_of_date: Valuation date for derived values when the
                specification has no date range.

        Raises:
            ValidationError subclasses before any data is read;
            ReportCancelledError if cancelled or timed out.
        """
        spec = (
            specification
            if isinstance(specification, ReportSpecification)
            else ReportSpecification.from_dict(specification)
        )
        self._composer.compile(spec)

        token = cancellation
        if token is None and timeout_seconds is not None:
            token = CancellationToken.with_timeout(timeout_seconds, self._clock)

        as_of = self._as_of(as_of_date)

        def build(snapshot: RecordSnapshot):
            return self._composer.run(spec, snapshot, cancellation=token, as_of_date=as_of)

        return self._generate(
            ReportType.CUSTOM,
            as_of,
            {"name": spec.name, "dataSource": spec.data_source, "limit": spec.limit},
            build,
        )

    # =========================================================================
    # Aging
    # =========================================================================

    def _aging_report(
        self,
        role: EntityRole,
        as_of_date: date | str | None,
        currency: str | None,
        entity_type: str | None,
        critical_only: bool,
        sort_by: AgingSortKey | str,
    ) -> GeneratedReport:
        as_of = self._as_of(as_of_date)
        window = self.payment_window(as_of)
        report_type = ReportType.AP_AGING if role == EntityRole.VENDOR else ReportType.AR_AGING

        def build(snapshot: RecordSnapshot):
            return self._aging.build(
                snapshot.documents,
                snapshot.entities,
                as_of,
                role,
                payment_window=window,
                currency=currency,
                entity_type=entity_type,
                critical_only=critical_only,
                sort_by=sort_by,
            )

        return self._generate(
            report_type,
            as_of,
            {
                "currency": currency,
                "entityType": entity_type,
                "criticalOnly": critical_only,
                "sortBy": AgingSortKey(sort_by).value,
            },
            build,
        )

    def ap_aging(
        self,
        as_of_date: date | str | None = None,
        currency: str | None = None,
        vendor_type: str | None = None,
        critical_only: bool = False,
        sort_by: AgingSortKey | str = AgingSortKey.TOTAL_AMOUNT,
    ) -> GeneratedReport:
        """Accounts payable aging (``APAgingReport``)."""
        return self._aging_report(
            EntityRole.VENDOR, as_of_date, currency, vendor_type, critical_only, sort_by
        )

    def ar_aging(
        self,
        as_of_date: date | str | None = None,
        currency: str | None = None,
        customer_type: str | None = None,
        critical_only: bool = False,
        sort_by: AgingSortKey | str = AgingSortKey.TOTAL_AMOUNT,
    ) -> GeneratedReport:
        """Accounts receivable aging (``ARAgingReport``)."""
        return self._aging_report(
            EntityRole.CUSTOMER, as_of_date, currency, customer_type, critical_only, sort_by
        )

    def aging_by_currency(
        self,
        role: EntityRole | str,
        as_of_date: date | str | None = None,
    ) -> dict[str, GeneratedReport]:
        """One aging report per currency present in the open items, from ONE snapshot."""
        role = EntityRole(role)
        as_of = self._as_of(as_of_date)
        window = self.payment_window(as_of)
        report_type = ReportType.AP_AGING if role == EntityRole.VENDOR else ReportType.AR_AGING

        started = self._clock.monotonic()
        with LogContext.bind(report_type=report_type.value):
            snapshot = self._store.snapshot()
            reports = self._aging.build_by_currency(
                snapshot.documents, snapshot.entities, as_of, role, payment_window=window
            )
        generated_at = self._clock.now()
        duration_ms = round((self._clock.monotonic() - started) * 1000, 3)

        generated = {}
        for code, report in reports.items():
            metadata = ReportMetadata(
                report_id=uuid4(),
                report_type=report_type,
                generated_at=generated_at,
                as_of_date=as_of,
                currency=code,
                snapshot_taken_at=snapshot.taken_at,
                parameters={"currency": code},
            )
            with LogContext.bind(report_id=str(metadata.report_id), report_type=report_type.value):
                logger.info(
                    "report_generated",
                    extra={"as_of_date": as_of.isoformat(), "currency": code, "duration_ms": duration_ms},
                )
            generated[code] = GeneratedReport(metadata=metadata, report=report)
        return generated

    # =========================================================================
    # Statements
    # =========================================================================

    def _statement(
        self,
        role: EntityRole,
        entity_id: str,
        start_date: date | str,
        end_date: date | str,
        currency: str | None,
    ) -> GeneratedReport:
        period = DateRange.of(start_date, end_date)
        report_type = (
            ReportType.VENDOR_STATEMENT if role == EntityRole.VENDOR else ReportType.CUSTOMER_STATEMENT
        )

        def build(snapshot: RecordSnapshot):
            entity = snapshot.entity(entity_id)
            if entity is None:
                raise InvalidRecordError(entity_id, f"unknown {role.value}")
            if entity.role != role:
                raise InvalidRecordError(entity_id, f"entity is a {entity.role.value}, not a {role.value}")
            return self._statements.build(
                entity,
                snapshot.documents_for_entity(entity_id),
                period,
                role,
                currency=currency,
            )

        return self._generate(
            report_type,
            period.end_date,
            {"entityId": entity_id, "statementPeriod": period.to_dict(), "currency": currency},
            build,
        )

    def customer_statement(
        self,
        customer_id: str,
        start_date: date | str,
        end_date: date | str,
        currency: str | None = None,
    ) -> GeneratedReport:
        return self._statement(EntityRole.CUSTOMER, customer_id, start_date, end_date, currency)

    def vendor_statement(
        self,
        vendor_id: str,
        start_date: date | str,
        end_date: date | str,
        currency: str | None = None,
    ) -> GeneratedReport:
        return self._statement(EntityRole.VENDOR, vendor_id, start_date, end_date, currency)

    # =========================================================================
    # Depreciation
    # =========================================================================

    def depreciation_report(
        self,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        category: str | None = None,
        currency: str | None = None,
        sort_by: DepreciationSortKey | str = DepreciationSortKey.PURCHASE_DATE,
    ) -> GeneratedReport:
        """
        Depreciation as of ``end_date`` (default today) for every asset
        purchased on or before it.  ``start_date`` defaults to the start of
        the fiscal year containing ``end_date``.
        """
        end = self._as_of(end_date)
        start = (
            parse_date(start_date)
            if start_date is not None
            else self._config.fiscal_calendar.period_for(end).start_date
        )
        period = DateRange(start, end)

        def build(snapshot: RecordSnapshot):
            return self._depreciation.build_report(
                snapshot.assets,
                period,
                category=category,
                currency=currency,
                sort_by=sort_by,
                default_currency=self._config.default_currency,
            )

        return self._generate(
            ReportType.DEPRECIATION,
            end,
            {
                "reportPeriod": period.to_dict(),
                "category": category,
                "currency": currency,
                "sortBy": DepreciationSortKey(sort_by).value,
            },
            build,
        )

    # =========================================================================
    # Inventory valuation
    # =========================================================================

    def inventory_valuation_report(
        self,
        as_of_date: date | str | None = None,
        category: str | None = None,
        location: str | None = None,
        currency: str | None = None,
        sort_by: InventorySortKey | str = InventorySortKey.TOTAL_VALUE,
    ) -> GeneratedReport:
        as_of = self._as_of(as_of_date)

        def build(snapshot: RecordSnapshot):
            return self._valuation.build_report(
                snapshot.items,
                as_of,
                category=category,
                location=location,
                currency=currency,
                sort_by=sort_by,
                default_currency=self._config.default_currency,
            )

        return self._generate(
            ReportType.INVENTORY_VALUATION,
            as_of,
            {
                "category": category,
                "location": location,
                "currency": currency,
                "sortBy": InventorySortKey(sort_by).value,
            },
            build,
        )
