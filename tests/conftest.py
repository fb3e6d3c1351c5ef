"""
Pytest fixtures for the analytics test suite.

Provides:
- Structured logging configured once per session, LogContext isolation
- ``captured_logs`` for asserting on JSON log records
- A deterministic clock fixed at 2024-12-31 17:00 UTC
- The sample ledger (see ``tests/sample_ledger.py``) as records, an
  in-memory record store and a reporting service
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from analytics_config import AnalyticsConfig, load_catalog
from analytics_engines.query import FieldCatalog
from analytics_kernel.domain.clock import DeterministicClock
from analytics_kernel.domain.records import AssetRecord, EntityRecord, InventoryItemRecord, LedgerDocument
from analytics_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from analytics_kernel.snapshot import InMemoryRecordStore, RecordSnapshot
from analytics_reports import ReportingService
from tests.sample_ledger import (
    make_assets,
    make_documents,
    make_entities,
    make_items,
    make_journal_lines,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture analytics logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.ap_aging(as_of_date=AS_OF)
            logs = captured_logs()
            assert any(r["message"] == "aging_report_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("analytics")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock / config / catalog
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 12, 31, 17, 0, 0, tzinfo=timezone.utc))


@pytest.fixture(scope="session")
def catalog() -> FieldCatalog:
    return FieldCatalog.from_definition(load_catalog())


@pytest.fixture
def config() -> AnalyticsConfig:
    return AnalyticsConfig()


# =============================================================================
# Sample ledger
# =============================================================================


@pytest.fixture
def entities() -> list[EntityRecord]:
    return make_entities()


@pytest.fixture
def documents() -> list[LedgerDocument]:
    return make_documents()


@pytest.fixture
def assets() -> list[AssetRecord]:
    return make_assets()


@pytest.fixture
def items() -> list[InventoryItemRecord]:
    return make_items()


@pytest.fixture
def record_store(deterministic_clock) -> InMemoryRecordStore:
    return InMemoryRecordStore(
        entities=make_entities(),
        documents=make_documents(),
        journal_lines=make_journal_lines(),
        assets=make_assets(),
        items=make_items(),
        clock=deterministic_clock,
    )


@pytest.fixture
def snapshot(record_store) -> RecordSnapshot:
    return record_store.snapshot()


@pytest.fixture
def service(record_store, config, catalog, deterministic_clock) -> ReportingService:
    return ReportingService(record_store, config=config, catalog=catalog, clock=deterministic_clock)
