"""
Insight Router: free-text keyword search to canned analytics queries.

Matching is a plain, deterministic, first-match-wins scan: the normalised
query is tested for any keyword substring of each intent in declaration
order. There is no relevance scoring.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from paydash.models.analytics import TimeWindow
from paydash.models.enums import BreakdownDimension, SearchIntent
from paydash.models.search import SearchResult
from paydash.utils.numeric import percentage

from .breakdown import BreakdownAggregator
from .kpi_calculator import KPICalculator
from .reports import ReportService

logger = structlog.get_logger()

TOP_USERS_LIMIT = 5
NO_MATCH_TITLE = "No Match Found"


@dataclass(frozen=True)
class IntentDefinition:
    """Static trigger keywords and display text for one search intent."""

    intent: SearchIntent
    keywords: tuple[str, ...]
    title: str
    description: str


INTENT_TABLE: tuple[IntentDefinition, ...] = (
    IntentDefinition(
        SearchIntent.FAILED_SUMMARY,
        ("failed", "failure", "failures", "declined", "rejected"),
        "Failed Transactions Summary",
        "Failed transaction count, share and volume for the selected period",
    ),
    IntentDefinition(
        SearchIntent.REVENUE_SUMMARY,
        ("revenue", "amount", "gtv", "earnings", "income", "money"),
        "Revenue Summary",
        "Gross transaction value and average ticket size for the selected period",
    ),
    IntentDefinition(
        SearchIntent.TOP_USERS,
        ("top users", "top user", "best customers", "vip", "high value", "top customers"),
        "Top Users by Revenue",
        "Highest-revenue users by successful payments",
    ),
    IntentDefinition(
        SearchIntent.PAYMENT_BREAKDOWN,
        (
            "payment method",
            "payment methods",
            "upi",
            "card",
            "cards",
            "wallet",
            "net banking",
            "currency",
        ),
        "Payment Method Breakdown",
        "Transaction volume and amount by payment method",
    ),
    IntentDefinition(
        SearchIntent.STATUS_OVERVIEW,
        ("status", "pending", "transaction status"),
        "Transaction Status Overview",
        "Distribution of transactions across statuses",
    ),
    IntentDefinition(
        SearchIntent.SUCCESS_RATE,
        ("success rate", "conversion", "completion", "success"),
        "Success Rate Analytics",
        "Share of transactions that completed successfully",
    ),
    IntentDefinition(
        SearchIntent.DAILY_TREND,
        ("daily", "trend", "trends", "over time", "history"),
        "Daily Transaction Trends",
        "Day-by-day transaction counts, amounts and success rates",
    ),
    IntentDefinition(
        SearchIntent.OVERVIEW,
        ("overview", "summary", "dashboard", "all"),
        "Analytics Overview",
        "Headline users, transactions, revenue and success rate",
    ),
)

SUGGESTED_KEYWORDS: tuple[str, ...] = tuple(d.keywords[0] for d in INTENT_TABLE)

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query_text: Optional[str]) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    if not query_text:
        return ""
    return _WHITESPACE.sub(" ", query_text.strip().lower())


def match_intent(query_text: Optional[str]) -> Optional[IntentDefinition]:
    """First intent, in declaration order, with a keyword contained in the query."""
    normalized = normalize_query(query_text)
    if not normalized:
        return None
    for definition in INTENT_TABLE:
        if any(keyword in normalized for keyword in definition.keywords):
            return definition
    return None


class InsightRouter:
    """
    Routes search queries to the matching analytics computation.

    Attributes:
        calculator: KPI calculator for KPI-backed intents
        breakdowns: Breakdown aggregator for status and payment method intents
        reports: Report service for top users, daily trend and overview
    """

    def __init__(
        self,
        calculator: KPICalculator,
        breakdowns: BreakdownAggregator,
        reports: ReportService,
    ):
        self.calculator = calculator
        self.breakdowns = breakdowns
        self.reports = reports
        self.logger = structlog.get_logger()
        self._handlers: dict[SearchIntent, Callable[[TimeWindow], dict[str, Any]]] = {
            SearchIntent.FAILED_SUMMARY: self._failed_summary,
            SearchIntent.REVENUE_SUMMARY: self._revenue_summary,
            SearchIntent.TOP_USERS: self._top_users,
            SearchIntent.PAYMENT_BREAKDOWN: self._payment_breakdown,
            SearchIntent.STATUS_OVERVIEW: self._status_overview,
            SearchIntent.SUCCESS_RATE: self._success_rate,
            SearchIntent.DAILY_TREND: self._daily_trend,
            SearchIntent.OVERVIEW: self._overview,
        }

    def route(self, query_text: Optional[str], window: TimeWindow) -> SearchResult:
        """
        Resolve ``query_text`` to an intent and run it over ``window``.

        Returns:
            SearchResult with ``data`` populated on a match, or the static
            no-match payload with suggested keywords.

        Raises:
            DataUnavailable: Store unreachable while computing the matched intent
        """
        query = query_text or ""
        definition = match_intent(query)

        if definition is None:
            self.logger.info("search_no_match", query=query)
            return SearchResult(
                query=query,
                matched_insight=None,
                title=NO_MATCH_TITLE,
                description=(
                    "No analytics matched your search. Try keywords like: "
                    + ", ".join(SUGGESTED_KEYWORDS)
                ),
                data=None,
                suggested_keywords=list(SUGGESTED_KEYWORDS),
            )

        data = self._handlers[definition.intent](window)
        self.logger.info("search_routed", query=query, intent=definition.intent.value)
        return SearchResult(
            query=query,
            matched_insight=definition.intent,
            title=definition.title,
            description=definition.description,
            data=data,
        )

    # =========================================================================
    # Intent handlers
    # =========================================================================

    @staticmethod
    def _period(window: TimeWindow) -> dict[str, str]:
        return {"period_start": window.start.isoformat(), "period_end": window.end.isoformat()}

    def _failed_summary(self, window: TimeWindow) -> dict[str, Any]:
        kpis = self.calculator.compute(window)
        return {
            "failed_count": kpis.failed_transaction_count,
            "failed_percentage": percentage(kpis.failed_transaction_count, kpis.total_transactions),
            "failed_volume": float(kpis.failed_volume),
            "total_transactions": kpis.total_transactions,
            **self._period(window),
        }

    def _revenue_summary(self, window: TimeWindow) -> dict[str, Any]:
        kpis = self.calculator.compute(window)
        return {
            "total_gtv": float(kpis.gtv),
            "average_ticket_size": float(kpis.average_ticket_size),
            "total_transactions": kpis.total_transactions,
            "success_rate": kpis.success_rate,
            **self._period(window),
        }

    def _top_users(self, window: TimeWindow) -> dict[str, Any]:
        users = self.reports.top_users(window, TOP_USERS_LIMIT)
        return {
            "users": [u.model_dump(mode="json") for u in users],
            "total_users_returned": len(users),
        }

    def _payment_breakdown(self, window: TimeWindow) -> dict[str, Any]:
        entries = self.breakdowns.breakdown_by(BreakdownDimension.PAYMENT_METHOD, window)
        return {
            "payment_methods": [e.model_dump(mode="json") for e in entries],
            "total_amount": float(sum(e.amount for e in entries)) if entries else 0.0,
        }

    def _status_overview(self, window: TimeWindow) -> dict[str, Any]:
        entries = self.breakdowns.breakdown_by(BreakdownDimension.STATUS, window)
        return {
            "statuses": [e.model_dump(mode="json") for e in entries],
            "total_transactions": sum(e.count for e in entries),
        }

    def _success_rate(self, window: TimeWindow) -> dict[str, Any]:
        kpis = self.calculator.compute(window)
        return {
            "success_rate": kpis.success_rate,
            "total_transactions": kpis.total_transactions,
            "failed_transactions": kpis.failed_transaction_count,
            "pending_transactions": kpis.pending_transactions,
        }

    def _daily_trend(self, window: TimeWindow) -> dict[str, Any]:
        stats = self.reports.daily_stats(window)
        return {
            "daily": [s.model_dump(mode="json") for s in stats],
            "total_days": len(stats),
        }

    def _overview(self, window: TimeWindow) -> dict[str, Any]:
        return self.reports.overview(window).model_dump(mode="json")
