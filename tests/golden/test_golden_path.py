"""
Golden path (end-to-end) tests for the paydash engine.

Each scenario runs a complete workflow over a fixed dataset in MockStorage:
ledger load, KPI computation, comparison, breakdowns, search, export and
the alert cycle from evaluation through notification cleanup.
"""

import csv
import io
import json
from datetime import datetime, timedelta
from decimal import Decimal

from paydash.engine.alerts import NotificationCenter, ThresholdEvaluator, build_rule_table
from paydash.engine.breakdown import BreakdownAggregator
from paydash.engine.exporter import AnalyticsExporter
from paydash.engine.insight_router import InsightRouter
from paydash.engine.kpi_calculator import KPICalculator
from paydash.engine.period_comparator import PeriodComparator
from paydash.engine.reports import ReportService
from paydash.models.analytics import TimeWindow
from paydash.models.enums import (
    BreakdownDimension,
    ExportFormat,
    ExportMetric,
    NotificationSeverity,
    NotificationType,
    SearchIntent,
    TransactionStatus,
)
from tests.conftest import MockStorage, build_status_ledger, make_transaction, make_user

NOW = datetime(2026, 10, 19, 12, 0, 0)


# ============================================================================
# Scenario 1: Ledger -> KPIs -> Breakdowns -> Search -> Export
# ============================================================================


def test_golden_reporting_over_status_ledger():
    """
    Golden path: one day of 132 transactions reported every way.

    Verifies the KPI card, funnel, search answer and CSV export agree on
    the same 86.36% success rate.
    """
    storage = MockStorage()
    day = datetime(2025, 3, 15)
    build_status_ledger(storage, day)
    window = TimeWindow.from_dates(day.date(), day.date())

    calculator = KPICalculator(store=storage)
    breakdowns = BreakdownAggregator(store=storage)
    reports = ReportService(store=storage)

    kpis = calculator.compute(window)
    assert kpis.success_rate == 86.36
    assert kpis.gtv == Decimal("11400.00")

    funnel = breakdowns.breakdown_by(BreakdownDimension.FUNNEL_STAGE, window)
    success_stage = next(e for e in funnel if e.label == "SUCCESS")
    assert success_stage.percentage_of_total == kpis.success_rate
    assert abs(sum(e.percentage_of_total for e in funnel) - 100.0) <= 0.1

    router = InsightRouter(calculator=calculator, breakdowns=breakdowns, reports=reports)
    answer = router.route("What is our success rate?", window)
    assert answer.matched_insight == SearchIntent.SUCCESS_RATE
    assert answer.data["success_rate"] == kpis.success_rate

    exporter = AnalyticsExporter(reports=reports, breakdowns=breakdowns)
    artifact = exporter.export(ExportMetric.TRANSACTIONS_SUMMARY, ExportFormat.CSV, window)
    rows = list(csv.DictReader(io.StringIO(artifact.content.decode("utf-8"))))
    assert len(rows) == 1
    assert rows[0]["Success Rate (%)"] == "86.36"
    assert rows[0]["Total Transactions"] == "132"


# ============================================================================
# Scenario 2: Week over week comparison
# ============================================================================


def test_golden_week_over_week_comparison():
    """
    Golden path: revenue halves and failures double week over week.

    Previous week: 20 payments of 100.00, 2 failures.
    Current week: 10 payments of 100.00, 4 failures.
    """
    storage = MockStorage()
    user = make_user(created_at=NOW - timedelta(days=60))
    storage.write_users([user])
    previous_at = NOW - timedelta(days=10)
    current_at = NOW - timedelta(days=2)
    storage.write_transactions(
        [make_transaction(user["id"], created_at=previous_at) for _ in range(20)]
        + [
            make_transaction(user["id"], status=TransactionStatus.FAILED, created_at=previous_at)
            for _ in range(2)
        ]
        + [make_transaction(user["id"], created_at=current_at) for _ in range(10)]
        + [
            make_transaction(user["id"], status=TransactionStatus.FAILED, created_at=current_at)
            for _ in range(4)
        ]
    )

    comparator = PeriodComparator(calculator=KPICalculator(store=storage))
    result = comparator.compare_trailing(7, now=NOW)

    assert result.current_period == "Last 7 days"
    assert result.previous_period == "Previous 7 days"
    assert result.deltas["gtv"] == -50.0
    assert result.deltas["failed_transaction_count"] == 100.0
    assert result.deltas["average_ticket_size"] == 0.0
    # 71.43 - 90.91 in percentage points
    assert result.deltas["success_rate"] == -19.48
    assert result.deltas["new_users_in_window"] is None

    body = result.model_dump(mode="json")
    assert body["current"]["gtv"] == 1000.0
    assert body["previous"]["gtv"] == 2000.0


# ============================================================================
# Scenario 3: Alert cycle
# ============================================================================


def test_golden_alert_cycle():
    """
    Golden path: bad day -> notifications -> dedup -> read -> cleanup.

    Yesterday: 10 payments, 1 failure. Today: 4 payments, 6 failures.
    Expect REVENUE_DROP (critical, -60%), FAILED_TRANSACTION_SPIKE
    (critical, +500%), LOW_SUCCESS_RATE (critical, 40%) in one cycle,
    nothing new in the next, and cleanup only after retention.
    """
    storage = MockStorage()
    user = make_user(created_at=NOW - timedelta(days=60))
    storage.write_users([user])
    yesterday = NOW - timedelta(hours=36)
    today = NOW - timedelta(hours=2)
    storage.write_transactions(
        [make_transaction(user["id"], created_at=yesterday) for _ in range(10)]
        + [make_transaction(user["id"], status=TransactionStatus.FAILED, created_at=yesterday)]
        + [make_transaction(user["id"], created_at=today) for _ in range(4)]
        + [
            make_transaction(user["id"], status=TransactionStatus.FAILED, created_at=today)
            for _ in range(6)
        ]
    )

    evaluator = ThresholdEvaluator(
        comparator=PeriodComparator(calculator=KPICalculator(store=storage)),
        metric_store=storage,
        notification_store=storage,
        rules=build_rule_table(),
    )
    report = evaluator.run_cycle(now=NOW)

    fired = {o.notification_type: o for o in report.fired}
    assert fired[NotificationType.REVENUE_DROP].rule_id == "revenue_drop_critical"
    assert fired[NotificationType.REVENUE_DROP].metric_value == -60.0
    assert fired[NotificationType.FAILED_TRANSACTION_SPIKE].metric_value == 500.0
    assert fired[NotificationType.LOW_SUCCESS_RATE].metric_value == 40.0
    assert report.failed == []
    assert all(n.severity == NotificationSeverity.CRITICAL for n in storage.notifications
               if n.type != NotificationType.HIGH_VOLUME_DAY)

    # Same conditions an hour later: cooldown suppresses everything
    follow_up = evaluator.run_cycle(now=NOW + timedelta(hours=1))
    assert follow_up.fired == []
    written = len(storage.notifications)

    center = NotificationCenter(store=storage, retention_days=30)
    listing = center.list_recent()
    assert listing.total_count == written
    assert listing.unread_count == written

    revenue_drop = next(n for n in storage.notifications if n.type == NotificationType.REVENUE_DROP)
    assert revenue_drop.comparison_period_label == "Last 24 hours vs Previous 24 hours"
    assert revenue_drop.description.startswith("GTV dropped 60.00%")

    center.mark_all_read()
    assert center.cleanup(now=NOW + timedelta(days=1)) == 0
    assert center.cleanup(now=NOW + timedelta(days=31)) == written
    assert center.list_recent().total_count == 0


# ============================================================================
# Scenario 4: Dashboard reports
# ============================================================================


def test_golden_dashboard_reports():
    """
    Golden path: overview, trends, top users and the transaction table
    over the status ledger all describe the same 132 transactions.
    """
    storage = MockStorage()
    day = datetime(2025, 3, 15)
    build_status_ledger(storage, day)
    window = TimeWindow.from_dates(day.date(), day.date())
    reports = ReportService(store=storage)

    overview = reports.overview(window)
    daily = reports.daily_stats(window)
    revenue = reports.revenue_over_time(window)
    top = reports.top_users(window, 10)

    assert overview.total_transactions == daily[0].total_transactions == 132
    assert overview.total_revenue == revenue[0].revenue == sum(u.total_revenue for u in top)

    export = AnalyticsExporter(reports=reports, breakdowns=BreakdownAggregator(store=storage))
    payload = json.loads(
        export.export(ExportMetric.REVENUE_SUMMARY, ExportFormat.JSON, window).content
    )
    assert payload["data"] == [{"day": "2025-03-15", "revenue": 11400.0}]
