"""
Analytics value models: time windows, raw aggregates, KPI snapshots,
comparisons, breakdowns and the supplementary report rows.

All models are frozen. Monetary fields are Decimal in Python and render as
JSON numbers; optional metrics default to None rather than zero.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator

from paydash.errors import InvalidParameter, InvalidRange

from .enums import PaymentMethod, TransactionStatus, TransactionType

Money = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]

ONE_MICROSECOND = timedelta(microseconds=1)


def _days_before(moment: datetime, days: int) -> datetime:
    """``moment - days``; a result outside the datetime range is an InvalidParameter."""
    try:
        return moment - timedelta(days=days)
    except OverflowError:
        raise InvalidParameter(f"{days} days before {moment.isoformat()} is out of range")


TRANSACTION_SORT_FIELDS: tuple[str, ...] = (
    "created_at",
    "amount",
    "status",
    "payment_method",
    "user_email",
)


class TimeWindow(BaseModel):
    """
    Inclusive time range ``[start, end]`` over which metrics are computed.

    Construction with ``start > end`` raises InvalidRange, never a pydantic
    ValidationError, so callers can map it straight to a 400.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(description="Inclusive window start (UTC)")
    end: datetime = Field(description="Inclusive window end (UTC)")

    @model_validator(mode="after")
    def check_order(self) -> "TimeWindow":
        if self.start > self.end:
            raise InvalidRange(
                f"window start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        return self

    @classmethod
    def from_dates(cls, start_date: date, end_date: date) -> "TimeWindow":
        """Whole calendar days: start_date 00:00 through end_date 23:59:59.999999."""
        if start_date > end_date:
            raise InvalidRange(
                f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
            )
        return cls(
            start=datetime.combine(start_date, time.min),
            end=datetime.combine(end_date, time.max),
        )

    @classmethod
    def trailing_days(cls, days: int, now: Optional[datetime] = None) -> "TimeWindow":
        """The ``days`` days ending at ``now``."""
        now = now or datetime.utcnow()
        return cls(start=_days_before(now, days), end=now)

    def preceding(self, days: int) -> "TimeWindow":
        """Adjacent window of ``days`` days ending just before this one starts."""
        return TimeWindow(start=_days_before(self.start, days), end=self.start - ONE_MICROSECOND)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class AggregateFilters(BaseModel):
    """Optional row filters applied before aggregation."""

    model_config = ConfigDict(frozen=True)

    status: Optional[TransactionStatus] = None
    transaction_type: Optional[TransactionType] = None
    payment_method: Optional[PaymentMethod] = None


class RawAggregates(BaseModel):
    """Counts and sums for one window straight from the metric store."""

    model_config = ConfigDict(frozen=True)

    total_count: int = 0
    pending_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    cancelled_count: int = 0
    successful_payment_count: int = 0
    successful_payment_sum: Money = Decimal(0)
    failed_sum: Money = Decimal(0)
    new_users: int = 0


class GroupedRow(BaseModel):
    """One bucket of a grouped aggregate."""

    model_config = ConfigDict(frozen=True)

    label: str
    count: int
    amount: Money = Decimal(0)
    success_count: int = 0
    success_amount: Money = Decimal(0)


class TopNRow(BaseModel):
    """One ranked entity from a top-N query."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    entity_label: str
    entity_detail: Optional[str] = None
    count: int
    amount: Money


class KPISnapshot(BaseModel):
    """
    The canonical KPI set for one window.

    Attributes:
        window: Window the snapshot was computed for
        total_users_cumulative: Users created at or before window end
        total_transactions: Transactions in the window, any status
        new_users_in_window: Users created in [start, end)
        pending_transactions: PENDING transactions in the window
        gtv: Gross transaction value, sum of successful PAYMENT amounts
        success_rate: SUCCESS share of all transactions, in percent
        average_ticket_size: gtv / successful payment count
        failed_transaction_count: FAILED transactions in the window
        failed_volume: Sum of FAILED amounts
    """

    model_config = ConfigDict(frozen=True)

    window: TimeWindow
    total_users_cumulative: int = Field(ge=0)
    total_transactions: int = Field(ge=0)
    new_users_in_window: int = Field(ge=0)
    pending_transactions: int = Field(ge=0)
    gtv: Money
    success_rate: float = Field(ge=0.0, le=100.0)
    average_ticket_size: Money
    failed_transaction_count: int = Field(ge=0)
    failed_volume: Money

    def metric_values(self) -> dict[str, Decimal]:
        """The 9 metrics keyed by name, as Decimal for exact delta math."""
        return {
            name: Decimal(str(getattr(self, name)))
            for name in KPI_METRICS
        }


KPI_METRICS: tuple[str, ...] = (
    "total_users_cumulative",
    "total_transactions",
    "new_users_in_window",
    "pending_transactions",
    "gtv",
    "success_rate",
    "average_ticket_size",
    "failed_transaction_count",
    "failed_volume",
)


class ComparisonResult(BaseModel):
    """Two adjacent equal-length windows and their per-metric deltas."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "deltas": {"gtv": -12.5, "success_rate": 1.2, "failed_volume": None},
                "current_period": "Last 7 days",
                "previous_period": "Previous 7 days",
                "period_days": 7,
            }
        },
    )

    current: KPISnapshot
    previous: KPISnapshot
    deltas: dict[str, Optional[float]] = Field(
        description="Percent change per metric; success_rate is a point difference"
    )
    current_period: str
    previous_period: str
    period_days: int


class BreakdownEntry(BaseModel):
    """One category of a breakdown with its share of the window total."""

    model_config = ConfigDict(frozen=True)

    label: str
    count: int
    amount: Optional[Money] = None
    average_amount: Optional[Money] = None
    percentage_of_total: float
    success_count: Optional[int] = None
    success_rate: Optional[float] = None


class DailyStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    total_transactions: int
    total_amount: Money
    successful_transactions: int
    successful_amount: Money
    failed_transactions: int
    success_rate: float


class RevenuePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    revenue: Money


class TopUser(BaseModel):
    """A user ranked by successful payment revenue."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    full_name: str
    email: Optional[str] = None
    transaction_count: int
    total_revenue: Money


class UserActivityPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    new_users: int
    active_users: int
    total_users: int


class TypeSummary(BaseModel):
    """Refund or payout totals for a window."""

    model_config = ConfigDict(frozen=True)

    transaction_type: TransactionType
    count: int
    total_amount: Money
    average_amount: Money
    percentage_of_all: float


class AnalyticsOverview(BaseModel):
    """Headline numbers for the dashboard landing page."""

    model_config = ConfigDict(frozen=True)

    window: TimeWindow
    total_users: int
    active_users: int
    total_transactions: int
    successful_transactions: int
    failed_transactions: int
    pending_transactions: int
    total_revenue: Money
    average_transaction_amount: Money
    success_rate: float


class TransactionQuery(BaseModel):
    """Filters, sort and pagination for the transaction table."""

    model_config = ConfigDict(frozen=True)

    email: Optional[str] = None
    status: Optional[TransactionStatus] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_type: Optional[TransactionType] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = 1
    page_size: int = 20
    sort_by: str = "created_at"
    sort_dir: str = "desc"


class TransactionRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    amount: Money
    currency: str
    transaction_type: TransactionType
    status: TransactionStatus
    payment_method: Optional[PaymentMethod] = None
    failure_reason: Optional[str] = None
    created_at: datetime


class TransactionPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[TransactionRow]
    page: int
    page_size: int
    total_count: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
