"""
Report Service: dashboard reports built on the MetricStore.

Covers the overview card, daily trend, revenue over time, top users,
refund/payout analysis, user activity and the paginated transaction table.
Parameter validation always happens before the first store call.
"""

from decimal import Decimal

import structlog

from paydash.errors import InvalidParameter, InvalidRange
from paydash.models.analytics import (
    ONE_MICROSECOND,
    TRANSACTION_SORT_FIELDS,
    AnalyticsOverview,
    DailyStat,
    RevenuePoint,
    TimeWindow,
    TopUser,
    TransactionPage,
    TransactionQuery,
    TypeSummary,
    UserActivityPoint,
)
from paydash.models.enums import BreakdownDimension, TopNMetric, TransactionType, UserStatus
from paydash.storage.base import MetricStore
from paydash.utils.numeric import percentage, quantize_money

logger = structlog.get_logger()

MAX_TOP_USERS = 100
MAX_PAGE_SIZE = 100
SORT_DIRECTIONS = ("asc", "desc")


def validate_limit(limit: int, maximum: int = MAX_TOP_USERS) -> int:
    """Reject limits outside 1..maximum."""
    if limit < 1 or limit > maximum:
        raise InvalidParameter(f"limit must be between 1 and {maximum}, got {limit}")
    return limit


def validate_transaction_query(query: TransactionQuery) -> TransactionQuery:
    """
    Check a transaction table query without touching the store.

    Raises:
        InvalidParameter: page, page_size, amount bounds or sort options invalid
        InvalidRange: end_date before start_date
    """
    if query.page < 1:
        raise InvalidParameter(f"page must be at least 1, got {query.page}")
    if query.page_size < 1 or query.page_size > MAX_PAGE_SIZE:
        raise InvalidParameter(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {query.page_size}"
        )
    if query.min_amount is not None and query.min_amount < 0:
        raise InvalidParameter("min_amount cannot be negative")
    if query.max_amount is not None and query.max_amount < 0:
        raise InvalidParameter("max_amount cannot be negative")
    if (
        query.min_amount is not None
        and query.max_amount is not None
        and query.min_amount > query.max_amount
    ):
        raise InvalidParameter(
            f"min_amount {query.min_amount} cannot be greater than max_amount {query.max_amount}"
        )
    if query.start_date and query.end_date and query.end_date < query.start_date:
        raise InvalidRange(
            f"end_date {query.end_date.isoformat()} is before start_date {query.start_date.isoformat()}"
        )
    if query.sort_by not in TRANSACTION_SORT_FIELDS:
        raise InvalidParameter(
            f"sort_by must be one of {list(TRANSACTION_SORT_FIELDS)}, got {query.sort_by!r}"
        )
    if query.sort_dir.lower() not in SORT_DIRECTIONS:
        raise InvalidParameter(f"sort_dir must be 'asc' or 'desc', got {query.sort_dir!r}")
    return query


class ReportService:
    """
    Dashboard reports over a MetricStore.

    Attributes:
        store: MetricStore serving the ledger aggregates
    """

    def __init__(self, store: MetricStore):
        self.store = store
        self.logger = structlog.get_logger()

    def overview(self, window: TimeWindow) -> AnalyticsOverview:
        """Headline counts, revenue and success rate for the window."""
        raw = self.store.aggregate(window)
        total_users = self.store.count_users(as_of=window.end)
        active_users = self.store.count_users(as_of=window.end, status=UserStatus.ACTIVE)

        if raw.successful_payment_count:
            average = quantize_money(
                raw.successful_payment_sum / Decimal(raw.successful_payment_count)
            )
        else:
            average = Decimal("0.00")

        return AnalyticsOverview(
            window=window,
            total_users=total_users,
            active_users=active_users,
            total_transactions=raw.total_count,
            successful_transactions=raw.success_count,
            failed_transactions=raw.failed_count,
            pending_transactions=raw.pending_count,
            total_revenue=quantize_money(raw.successful_payment_sum),
            average_transaction_amount=average,
            success_rate=percentage(raw.success_count, raw.total_count),
        )

    def daily_stats(self, window: TimeWindow) -> list[DailyStat]:
        """Per-day statistics, newest day first."""
        rows = self.store.daily_stats(window)
        stats = [
            DailyStat(
                day=row["day"],
                total_transactions=row["total_count"],
                total_amount=quantize_money(row["total_amount"]),
                successful_transactions=row["success_count"],
                successful_amount=quantize_money(row["success_amount"]),
                failed_transactions=row["failed_count"],
                success_rate=percentage(row["success_count"], row["total_count"]),
            )
            for row in rows
        ]
        stats.sort(key=lambda s: s.day, reverse=True)
        return stats

    def revenue_over_time(self, window: TimeWindow) -> list[RevenuePoint]:
        """Successful payment revenue per day, oldest first."""
        return [
            RevenuePoint(day=row["day"], revenue=quantize_money(row["successful_payment_amount"]))
            for row in self.store.daily_stats(window)
        ]

    def top_users(self, window: TimeWindow, limit: int) -> list[TopUser]:
        """
        Users ranked by successful payment revenue.

        Raises:
            InvalidParameter: limit outside 1..100
        """
        validate_limit(limit)
        rows = self.store.top_n(window, TopNMetric.REVENUE, limit)
        return [
            TopUser(
                user_id=row.entity_id,
                full_name=row.entity_label,
                email=row.entity_detail,
                transaction_count=row.count,
                total_revenue=quantize_money(row.amount),
            )
            for row in rows
        ]

    def refund_payout(self, window: TimeWindow) -> list[TypeSummary]:
        """
        Refund and payout totals with their share of all transactions.

        Types with no transactions in the window are omitted.
        """
        rows = self.store.grouped_aggregate(window, BreakdownDimension.TRANSACTION_TYPE)
        total = sum(r.count for r in rows)
        by_type = {r.label: r for r in rows}

        summaries = []
        for txn_type in (TransactionType.REFUND, TransactionType.PAYOUT):
            row = by_type.get(txn_type.value)
            if row is None or row.count == 0:
                continue
            summaries.append(
                TypeSummary(
                    transaction_type=txn_type,
                    count=row.count,
                    total_amount=quantize_money(row.amount),
                    average_amount=quantize_money(row.amount / Decimal(row.count)),
                    percentage_of_all=percentage(row.count, total),
                )
            )
        return summaries

    def user_activity(self, window: TimeWindow) -> list[UserActivityPoint]:
        """New users, active users and running user total per day."""
        rows = self.store.user_activity(window)
        running = self.store.count_users(as_of=window.start - ONE_MICROSECOND)
        points = []
        for row in rows:
            running += row["new_users"]
            points.append(
                UserActivityPoint(
                    day=row["day"],
                    new_users=row["new_users"],
                    active_users=row["active_users"],
                    total_users=running,
                )
            )
        return points

    def transactions_page(self, query: TransactionQuery) -> TransactionPage:
        """
        Filtered, sorted, paginated transaction table.

        Raises:
            InvalidParameter / InvalidRange: before any store call
        """
        validate_transaction_query(query)
        items, total = self.store.find_transactions(query)
        total_pages = max(1, (total + query.page_size - 1) // query.page_size)

        self.logger.info(
            "transactions_page_served",
            page=query.page,
            page_size=query.page_size,
            total_count=total,
        )
        return TransactionPage(
            items=items,
            page=query.page,
            page_size=query.page_size,
            total_count=total,
            total_pages=total_pages,
        )
