"""Bread count records: storage, ingestion and reporting.

Modules:
- db: SQLite record store (append-only)
- service: ingestion pipeline and caller-facing helpers
- stats: daily and per-employee rollups
- api: Starlette JSON API
"""

from .db import RecordStore
from .service import IngestionPipeline, coerce_cash_amount
from .stats import AggregationEngine

__all__ = [
    "AggregationEngine",
    "IngestionPipeline",
    "RecordStore",
    "coerce_cash_amount",
]
