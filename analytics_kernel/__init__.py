"""
Analytics Kernel

Foundation layer for the reporting and analytics engine:
- Money and period primitives (Decimal only, never float)
- Immutable input records and point-in-time record snapshots
- Typed exception hierarchy
- Structured JSON logging
- Read-only SQLAlchemy adapter for the upstream record store
"""

__version__ = "0.1.0"
