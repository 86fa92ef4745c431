"""
Analytics aggregation and insight engine.

- KPI calculation over arbitrary windows
- Adjacent period comparison with per-metric deltas
- Categorical breakdowns (status, payment method, hour, funnel stage)
- Dashboard reports and file export
- Keyword search routing to canned analytics
- Threshold evaluation and notification management (paydash.engine.alerts)

Engine components take their store through the constructor and hold no
other state, so they can be built per request.
"""

from .breakdown import BreakdownAggregator
from .exporter import AnalyticsExporter
from .insight_router import InsightRouter
from .kpi_calculator import KPICalculator
from .period_comparator import PeriodComparator
from .reports import ReportService

__all__ = [
    "AnalyticsExporter",
    "BreakdownAggregator",
    "InsightRouter",
    "KPICalculator",
    "PeriodComparator",
    "ReportService",
]
