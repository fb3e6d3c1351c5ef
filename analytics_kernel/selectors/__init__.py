"""Read-only selectors that turn read-model rows into domain records."""

from analytics_kernel.selectors.base import BaseSelector
from analytics_kernel.selectors.record_selector import RecordSelector, SqlRecordStore

__all__ = ["BaseSelector", "RecordSelector", "SqlRecordStore"]
