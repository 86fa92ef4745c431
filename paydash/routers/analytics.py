"""
Analytics reporting router.

Wired to:
- KPICalculator / PeriodComparator for KPI cards and comparisons
- BreakdownAggregator for status, hour, payment method and funnel splits
- ReportService for trends, top users, activity and the transaction table
- InsightRouter for keyword search

All errors are AnalyticsError subclasses rendered by the application
exception handler; validation runs before any store access.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Query

from paydash.config import get_settings
from paydash.engine.breakdown import BreakdownAggregator
from paydash.engine.insight_router import InsightRouter
from paydash.engine.kpi_calculator import KPICalculator
from paydash.engine.period_comparator import PeriodComparator
from paydash.engine.reports import ReportService, validate_limit
from paydash.engine.windows import parse_range, require_dates, resolve_window
from paydash.models.analytics import TimeWindow, TransactionQuery
from paydash.models.enums import BreakdownDimension, PaymentMethod, TransactionStatus, TransactionType
from paydash.storage import get_storage
from paydash.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _dump(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


def _breakdown(dimension: BreakdownDimension, start_date, end_date) -> dict:
    window = resolve_window(start_date, end_date)
    entries = BreakdownAggregator(store=get_storage()).breakdown_by(dimension, window)
    return {"success": True, "data": _dump(entries)}


@router.get("/overview")
async def get_overview(start_date: Optional[date] = None, end_date: Optional[date] = None):
    """Headline users, transactions, revenue and success rate (default: last 30 days)."""
    window = resolve_window(start_date, end_date, default_days=get_settings().default_period_days)
    overview = ReportService(store=get_storage()).overview(window)
    return {"success": True, "data": overview.model_dump(mode="json")}


@router.get("/transactions/by-date")
async def get_transactions_by_date(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Daily transaction statistics, newest first. Both dates required."""
    window = require_dates(start_date, end_date)
    stats = ReportService(store=get_storage()).daily_stats(window)
    return {"success": True, "data": _dump(stats)}


@router.get("/transactions/by-status")
async def get_transactions_by_status(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Transaction counts and shares per status (default: all time)."""
    return _breakdown(BreakdownDimension.STATUS, start_date, end_date)


@router.get("/transactions/by-hour")
async def get_transactions_by_hour(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Transactions per hour of day across the window; empty hours omitted."""
    return _breakdown(BreakdownDimension.HOUR_OF_DAY, start_date, end_date)


@router.get("/transactions/by-payment-method")
async def get_transactions_by_payment_method(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Amounts, counts and averages per payment method, largest amount first."""
    return _breakdown(BreakdownDimension.PAYMENT_METHOD, start_date, end_date)


@router.get("/transactions/refund-payout")
async def get_refund_payout(start_date: Optional[date] = None, end_date: Optional[date] = None):
    """Refund and payout totals with their share of all transactions."""
    window = resolve_window(start_date, end_date)
    summaries = ReportService(store=get_storage()).refund_payout(window)
    return {"success": True, "data": _dump(summaries)}


@router.get("/conversion-funnel")
async def get_conversion_funnel(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Funnel stages in PENDING, SUCCESS, FAILED order."""
    return _breakdown(BreakdownDimension.FUNNEL_STAGE, start_date, end_date)


@router.get("/revenue/over-time")
async def get_revenue_over_time(
    start_date: Optional[date] = None, end_date: Optional[date] = None
):
    """Daily successful-payment revenue. Both dates required."""
    window = require_dates(start_date, end_date)
    points = ReportService(store=get_storage()).revenue_over_time(window)
    return {"success": True, "data": _dump(points)}


@router.get("/users/top-by-revenue")
async def get_top_users(
    limit: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """Top users by successful payment revenue; limit must be 1..100."""
    limit = get_settings().top_users_default_limit if limit is None else limit
    validate_limit(limit)
    window = resolve_window(start_date, end_date)
    users = ReportService(store=get_storage()).top_users(window, limit)
    return {"success": True, "data": _dump(users)}


@router.get("/users/activity-over-time")
async def get_user_activity(start_date: Optional[date] = None, end_date: Optional[date] = None):
    """Daily new users, active users and running user total. Both dates required."""
    window = require_dates(start_date, end_date)
    points = ReportService(store=get_storage()).user_activity(window)
    return {"success": True, "data": _dump(points)}


@router.get("/kpis")
async def get_kpis(start_date: Optional[date] = None, end_date: Optional[date] = None):
    """The canonical KPI snapshot (default: last 30 days)."""
    window = resolve_window(start_date, end_date, default_days=get_settings().default_period_days)
    snapshot = KPICalculator(store=get_storage()).compute(window)
    return {"success": True, "data": snapshot.model_dump(mode="json")}


@router.get("/kpis/comparison")
async def get_kpi_comparison(
    period_days: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """
    KPIs for the current period vs the adjacent previous period.

    With explicit dates the period length is the number of calendar days in
    the range; otherwise the trailing ``period_days`` (default 30).
    """
    comparator = PeriodComparator(calculator=KPICalculator(store=get_storage()))

    if start_date or end_date:
        window = require_dates(start_date, end_date)
        days = (end_date - start_date).days + 1
        result = comparator.compare(window, days)
    else:
        days = get_settings().default_period_days if period_days is None else period_days
        result = comparator.compare_trailing(days)

    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/transactions/table")
async def get_transactions_table(
    page: int = 1,
    page_size: int = 20,
    email: Optional[str] = None,
    status: Optional[TransactionStatus] = None,
    payment_method: Optional[PaymentMethod] = None,
    transaction_type: Optional[TransactionType] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
):
    """Filtered, sorted and paginated transaction table."""
    query = TransactionQuery(
        email=email,
        status=status,
        payment_method=payment_method,
        transaction_type=transaction_type,
        min_amount=min_amount,
        max_amount=max_amount,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )
    result = ReportService(store=get_storage()).transactions_page(query)

    return {
        "success": True,
        "data": _dump(result.items),
        "pagination": {
            "page": result.page,
            "page_size": result.page_size,
            "total_count": result.total_count,
            "total_pages": result.total_pages,
            "has_next": result.has_next,
            "has_prev": result.has_prev,
        },
    }


@router.get("/search")
async def search_insights(
    q: str = "",
    range_: Optional[str] = Query(default=None, alias="range"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """
    Route a keyword query to a canned analytics result.

    The window is either the explicit date range or a shorthand ``range``
    ("7d", "30d", "90d", "all" or a day count; default "7d").
    """
    if start_date or end_date:
        window: TimeWindow = require_dates(start_date, end_date)
    else:
        window = parse_range(range_)

    storage = get_storage()
    router_engine = InsightRouter(
        calculator=KPICalculator(store=storage),
        breakdowns=BreakdownAggregator(store=storage),
        reports=ReportService(store=storage),
    )
    result = router_engine.route(q, window)

    logger.info("search_served", query=q, matched=result.matched_insight)
    return {"success": True, "data": result.model_dump(mode="json")}
