"""
Typed Exception Hierarchy for the Analytics Engine.

Every failure the engine can produce has a TYPED exception class with a
machine-readable ``code`` class attribute and structured attributes for
its context. Callers catch by type and read attributes; they never parse
message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AnalyticsError (base)
    |
    +-- ValidationError
    |   +-- UnknownDataSourceError
    |   +-- UnknownFieldError
    |   +-- InvalidFilterError
    |   +-- InvalidDateRangeError
    |   +-- InvalidSpecificationError
    |   +-- MissingDateError
    |   +-- InvalidRecordError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ValuationError
    |   +-- InsufficientLayerQuantityError
    |
    +-- ReportCancelledError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | UNKNOWN_DATA_SOURCE         | Report names a source not in the catalog
                | UNKNOWN_FIELD               | Field id not declared for the source
                | INVALID_FILTER              | Operator illegal for type / bad value
                | INVALID_DATE_RANGE          | start_date after end_date
                | INVALID_SPECIFICATION       | Malformed report specification
                | MISSING_DATE                | Required date is None
                | INVALID_RECORD              | Input record violates a precondition
----------------|-----------------------------|-----------------------------------------
Currency        | INVALID_CURRENCY            | Not a valid ISO 4217 code
                | CURRENCY_MISMATCH           | Aggregation would mix currencies
----------------|-----------------------------|-----------------------------------------
Valuation       | INSUFFICIENT_LAYER_QUANTITY | On-hand exceeds quantity ever received
----------------|-----------------------------|-----------------------------------------
Cancellation    | REPORT_CANCELLED            | Caller cancelled or timeout elapsed
----------------|-----------------------------|-----------------------------------------
Config          | INVALID_CONFIGURATION       | Config/catalog file is inconsistent

===============================================================================
HANDLING PATTERNS
===============================================================================

None of these errors are transient. The engine never retries and never
returns a partial report:

    try:
        report = service.custom_report(spec)
    except InvalidFilterError as e:
        return {"error": e.code, "field": e.field_id, "operator": e.operator}
    except CurrencyMismatchError as e:
        return {"error": e.code, "currencies": [e.expected, e.received]}

``EmptyResult`` is deliberately NOT an error: zero matching rows, assets or
entities is a valid, well-formed report.
"""

from __future__ import annotations

from decimal import Decimal


class AnalyticsError(Exception):
    """
    Base exception for all analytics engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ANALYTICS_ERROR"


# Validation exceptions (caller errors, raised before computation)


class ValidationError(AnalyticsError):
    """Base exception for request/specification validation failures."""

    code: str = "VALIDATION_ERROR"


class UnknownDataSourceError(ValidationError):
    """Data source id is not declared in the field catalog."""

    code: str = "UNKNOWN_DATA_SOURCE"

    def __init__(self, data_source: str):
        self.data_source = data_source
        super().__init__(f"Unknown data source: {data_source!r}")


class UnknownFieldError(ValidationError):
    """Field id does not belong to the data source's field set."""

    code: str = "UNKNOWN_FIELD"

    def __init__(self, data_source: str, field_id: str):
        self.data_source = data_source
        self.field_id = field_id
        super().__init__(
            f"Unknown field {field_id!r} for data source {data_source!r}"
        )


class InvalidFilterError(ValidationError):
    """Filter operator is illegal for the field type, or its value is unusable."""

    code: str = "INVALID_FILTER"

    def __init__(
        self,
        field_id: str,
        operator: str,
        field_type: str | None = None,
        reason: str = "operator not allowed for field type",
    ):
        self.field_id = field_id
        self.operator = operator
        self.field_type = field_type
        self.reason = reason
        super().__init__(
            f"Invalid filter on {field_id!r} ({field_type}) "
            f"with operator {operator!r}: {reason}"
        )


class InvalidDateRangeError(ValidationError):
    """Date range start is after its end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: str, end_date: str):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Invalid date range: start {start_date} is after end {end_date}"
        )


class InvalidSpecificationError(ValidationError):
    """Report specification is malformed (e.g. no fields, negative limit)."""

    code: str = "INVALID_SPECIFICATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid report specification: {reason}")


class MissingDateError(ValidationError):
    """A date required for the computation is missing."""

    code: str = "MISSING_DATE"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required date: {field_name}")


class InvalidRecordError(ValidationError):
    """An input record violates a precondition of the engine."""

    code: str = "INVALID_RECORD"

    def __init__(self, record_id: str, reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Invalid record {record_id}: {reason}")


# Currency exceptions


class CurrencyError(AnalyticsError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class CurrencyMismatchError(CurrencyError):
    """An operation would silently conflate two currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str, operation: str = "aggregate"):
        self.expected = expected
        self.received = received
        self.operation = operation
        super().__init__(
            f"Cannot {operation} amounts in {expected} and {received}"
        )


# Valuation exceptions


class ValuationError(AnalyticsError):
    """Base exception for inventory valuation errors."""

    code: str = "VALUATION_ERROR"


class InsufficientLayerQuantityError(ValuationError):
    """Quantity on hand exceeds the total quantity received across cost layers."""

    code: str = "INSUFFICIENT_LAYER_QUANTITY"

    def __init__(self, item_id: str, quantity_on_hand: Decimal, quantity_available: Decimal):
        self.item_id = item_id
        self.quantity_on_hand = str(quantity_on_hand)
        self.quantity_available = str(quantity_available)
        super().__init__(
            f"Item {item_id}: on hand {quantity_on_hand} exceeds "
            f"layer quantity {quantity_available}"
        )


# Cancellation


class ReportCancelledError(AnalyticsError):
    """The caller cancelled the report, or its timeout elapsed."""

    code: str = "REPORT_CANCELLED"

    def __init__(self, stage: str, reason: str = "cancelled"):
        self.stage = stage
        self.reason = reason
        super().__init__(f"Report {reason} during {stage}")


# Configuration


class ConfigurationError(AnalyticsError):
    """Configuration or catalog file is invalid."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
