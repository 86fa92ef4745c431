"""
Domain models for the payments analytics engine.
"""

from .analytics import (
    KPI_METRICS,
    AggregateFilters,
    AnalyticsOverview,
    BreakdownEntry,
    ComparisonResult,
    DailyStat,
    GroupedRow,
    KPISnapshot,
    RawAggregates,
    RevenuePoint,
    TimeWindow,
    TopNRow,
    TopUser,
    TransactionPage,
    TransactionQuery,
    TransactionRow,
    TypeSummary,
    UserActivityPoint,
)
from .notifications import EvaluationReport, Notification, NotificationList, RuleOutcome, ThresholdRule
from .search import SearchResult

__all__ = [
    "KPI_METRICS",
    "AggregateFilters",
    "AnalyticsOverview",
    "BreakdownEntry",
    "ComparisonResult",
    "DailyStat",
    "EvaluationReport",
    "GroupedRow",
    "KPISnapshot",
    "Notification",
    "NotificationList",
    "RawAggregates",
    "RevenuePoint",
    "RuleOutcome",
    "SearchResult",
    "ThresholdRule",
    "TimeWindow",
    "TopNRow",
    "TopUser",
    "TransactionPage",
    "TransactionQuery",
    "TransactionRow",
    "TypeSummary",
    "UserActivityPoint",
]
