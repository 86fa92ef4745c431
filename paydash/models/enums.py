"""
Enumeration types for the payments analytics engine.

All enums inherit from str to ensure JSON serialization compatibility and
so that values can be bound directly as DuckDB query parameters.
"""

from enum import Enum


class TransactionStatus(str, Enum):
    """Lifecycle status of a ledger transaction."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class TransactionType(str, Enum):
    """
    Kind of money movement.

    Only successful PAYMENT transactions count toward gross transaction value.
    """

    PAYMENT = "PAYMENT"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"
    CHARGEBACK = "CHARGEBACK"
    FEE = "FEE"


class PaymentMethod(str, Enum):
    """Instrument used to pay."""

    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"


class UserStatus(str, Enum):
    """Account status of a ledger user."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class NotificationType(str, Enum):
    """Conditions the threshold evaluator can raise a notification for."""

    REVENUE_DROP = "REVENUE_DROP"
    FAILED_TRANSACTION_SPIKE = "FAILED_TRANSACTION_SPIKE"
    LOW_SUCCESS_RATE = "LOW_SUCCESS_RATE"
    HIGH_PENDING_TRANSACTIONS = "HIGH_PENDING_TRANSACTIONS"
    HIGH_VOLUME_DAY = "HIGH_VOLUME_DAY"


class NotificationSeverity(str, Enum):
    """Severity attached to a fired notification."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class ComparisonOperator(str, Enum):
    """Operator applied as ``metric <op> threshold`` by a threshold rule."""

    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    def holds(self, value: float, threshold: float) -> bool:
        if self is ComparisonOperator.GT:
            return value > threshold
        if self is ComparisonOperator.GTE:
            return value >= threshold
        if self is ComparisonOperator.LT:
            return value < threshold
        return value <= threshold


class BreakdownDimension(str, Enum):
    """Categorical dimensions a window can be split by."""

    STATUS = "status"
    PAYMENT_METHOD = "payment_method"
    HOUR_OF_DAY = "hour_of_day"
    FUNNEL_STAGE = "funnel_stage"
    TRANSACTION_TYPE = "transaction_type"


class TopNMetric(str, Enum):
    """Ranking metric for top-N user queries."""

    REVENUE = "revenue"
    TRANSACTION_COUNT = "transaction_count"


class SearchIntent(str, Enum):
    """
    Canned analytics queries reachable from keyword search.

    Declaration order is the match priority used by the insight router.
    """

    FAILED_SUMMARY = "FAILED_SUMMARY"
    REVENUE_SUMMARY = "REVENUE_SUMMARY"
    TOP_USERS = "TOP_USERS"
    PAYMENT_BREAKDOWN = "PAYMENT_BREAKDOWN"
    STATUS_OVERVIEW = "STATUS_OVERVIEW"
    SUCCESS_RATE = "SUCCESS_RATE"
    DAILY_TREND = "DAILY_TREND"
    OVERVIEW = "OVERVIEW"


class ExportMetric(str, Enum):
    """Datasets available for file export."""

    TRANSACTIONS_SUMMARY = "TRANSACTIONS_SUMMARY"
    REVENUE_SUMMARY = "REVENUE_SUMMARY"
    FAILED_TRANSACTIONS = "FAILED_TRANSACTIONS"
    PAYMENT_METHOD_BREAKDOWN = "PAYMENT_METHOD_BREAKDOWN"


class ExportFormat(str, Enum):
    """File formats for exports."""

    CSV = "csv"
    JSON = "json"
