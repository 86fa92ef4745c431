"""
Abstract storage interfaces for the payments analytics engine.

The engine depends only on these two contracts so that the DuckDB backend
can be swapped (e.g. for a warehouse) without touching aggregation code:

- MetricStore: read-only, windowed aggregate queries over the ledger
  (users and transactions), plus bulk loaders used by seeding and tests.
- NotificationStore: persistence for fired threshold notifications.

Implementations raise paydash.errors.DataUnavailable when the backing
store is unreachable, errors, or exceeds the configured query timeout.
Empty results are never an error.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from paydash.models.analytics import (
    AggregateFilters,
    GroupedRow,
    RawAggregates,
    TimeWindow,
    TopNRow,
    TransactionQuery,
    TransactionRow,
)
from paydash.models.enums import BreakdownDimension, NotificationType, TopNMetric, UserStatus
from paydash.models.notifications import Notification


class MetricStore(ABC):
    """
    Windowed aggregate queries over the transaction ledger.

    All window bounds are inclusive unless stated otherwise. Implementations
    must be safe to call concurrently from multiple threads.
    """

    # =========================================================================
    # Aggregates
    # =========================================================================

    @abstractmethod
    def aggregate(
        self, window: TimeWindow, filters: Optional[AggregateFilters] = None
    ) -> RawAggregates:
        """
        Count and sum transactions in a window.

        Args:
            window: Inclusive window on transaction created_at
            filters: Optional status / type / payment method restriction

        Returns:
            RawAggregates with per-status counts, the successful PAYMENT
            count and sum, the FAILED sum, and users created in
            ``[window.start, window.end)``.

        Raises:
            DataUnavailable: If the store cannot answer
        """
        pass

    @abstractmethod
    def grouped_aggregate(
        self, window: TimeWindow, dimension: BreakdownDimension
    ) -> list[GroupedRow]:
        """
        Count and sum transactions per category of ``dimension``.

        ``hour_of_day`` labels are the hour as a decimal string ("0".."23");
        rows with a NULL payment method are labelled "UNKNOWN". Only
        non-empty buckets are returned; ordering is unspecified.

        Raises:
            DataUnavailable: If the store cannot answer
        """
        pass

    @abstractmethod
    def top_n(self, window: TimeWindow, metric: TopNMetric, n: int) -> list[TopNRow]:
        """
        Rank users by successful PAYMENT revenue or count in the window.

        Ties are broken by user id ascending so results are deterministic.

        Raises:
            DataUnavailable: If the store cannot answer
        """
        pass

    @abstractmethod
    def count_users(
        self, as_of: Optional[datetime] = None, status: Optional[UserStatus] = None
    ) -> int:
        """Users created at or before ``as_of`` (all users when None)."""
        pass

    @abstractmethod
    def count_new_users(self, window: TimeWindow) -> int:
        """Users created in the half-open range ``[window.start, window.end)``."""
        pass

    @abstractmethod
    def daily_stats(self, window: TimeWindow) -> list[dict]:
        """
        Per-calendar-day transaction totals.

        Returns:
            Dicts with keys ``day``, ``total_count``, ``total_amount``,
            ``success_count``, ``success_amount``, ``successful_payment_amount``
            and ``failed_count``, ordered by day ascending.
        """
        pass

    @abstractmethod
    def user_activity(self, window: TimeWindow) -> list[dict]:
        """
        Per-calendar-day user activity.

        Returns:
            Dicts with keys ``day``, ``new_users`` and ``active_users``
            (distinct users with at least one transaction), ordered by day.
        """
        pass

    @abstractmethod
    def find_transactions(
        self, query: TransactionQuery
    ) -> tuple[list[TransactionRow], int]:
        """
        Filter, sort and paginate ledger transactions.

        The query is assumed already validated (sort field whitelisted,
        page and page_size in range).

        Returns:
            (rows for the requested page, total matching row count)
        """
        pass

    # =========================================================================
    # Loading
    # =========================================================================

    @abstractmethod
    def write_users(self, users: list[dict]) -> int:
        """Bulk insert users. Returns the number written."""
        pass

    @abstractmethod
    def write_transactions(self, transactions: list[dict]) -> int:
        """Bulk insert transactions. Returns the number written."""
        pass


class NotificationStore(ABC):
    """Persistence for threshold notifications."""

    @abstractmethod
    def exists_since(self, notification_type: NotificationType, since: datetime) -> bool:
        """Whether a notification of this type was created at or after ``since``."""
        pass

    @abstractmethod
    def insert_notification(self, notification: Notification) -> int:
        """
        Persist a notification in a single write.

        Returns:
            The store-assigned notification id
        """
        pass

    @abstractmethod
    def mark_read(self, notification_id: int) -> bool:
        """Mark one notification read. Returns False when the id is unknown."""
        pass

    @abstractmethod
    def mark_all_read(self) -> int:
        """Mark every unread notification read. Returns the number updated."""
        pass

    @abstractmethod
    def list_recent(self, limit: int) -> list[Notification]:
        """Most recent notifications first."""
        pass

    @abstractmethod
    def count_unread(self) -> int:
        pass

    @abstractmethod
    def count_all(self) -> int:
        pass

    @abstractmethod
    def delete_read_older_than(self, before: datetime) -> int:
        """Delete read notifications created before ``before``. Returns the count."""
        pass
