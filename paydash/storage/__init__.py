"""
Data storage layer.

MetricStore serves windowed ledger aggregates; NotificationStore persists
fired notifications. Both are implemented on DuckDB.
"""

from functools import lru_cache

from paydash.config import get_settings

from .base import MetricStore, NotificationStore
from .duckdb_storage import DuckDBStorage


@lru_cache
def get_storage() -> DuckDBStorage:
    """
    Get cached storage backend instance (singleton).

    The same DuckDB instance serves as both MetricStore and NotificationStore.
    """
    settings = get_settings()
    return DuckDBStorage(
        db_path=settings.db_path,
        query_timeout_seconds=settings.query_timeout_seconds,
        threads=settings.db_threads,
        memory_limit=settings.db_memory_limit,
    )


__all__ = [
    "DuckDBStorage",
    "MetricStore",
    "NotificationStore",
    "get_storage",
]
