"""
Period Comparator: current window vs the adjacent previous window.

Computes the KPI snapshot for both windows and a delta per metric. Deltas
are relative percent changes, except success rate which is a difference in
percentage points. A delta is None whenever the previous value is zero.
"""

from datetime import datetime
from typing import Optional

import structlog

from paydash.models.analytics import KPI_METRICS, ComparisonResult, KPISnapshot, TimeWindow
from paydash.utils.numeric import percentage_change, round_half_up

from .kpi_calculator import KPICalculator
from .windows import check_period_days

logger = structlog.get_logger()

POINT_DELTA_METRICS = frozenset({"success_rate"})


def period_labels(period_days: int) -> tuple[str, str]:
    """Human labels for the current and previous period."""
    if period_days == 1:
        return "Last 24 hours", "Previous 24 hours"
    return f"Last {period_days} days", f"Previous {period_days} days"


def compute_deltas(current: KPISnapshot, previous: KPISnapshot) -> dict[str, Optional[float]]:
    """Per-metric delta between two snapshots."""
    cur_values = current.metric_values()
    prev_values = previous.metric_values()
    deltas: dict[str, Optional[float]] = {}

    for metric in KPI_METRICS:
        cur = cur_values[metric]
        prev = prev_values[metric]
        if metric in POINT_DELTA_METRICS:
            deltas[metric] = None if prev == 0 else round_half_up(cur - prev)
        else:
            deltas[metric] = percentage_change(cur, prev)
    return deltas


class PeriodComparator:
    """
    Compares KPI snapshots across two adjacent equal-length periods.

    Attributes:
        calculator: KPICalculator used for both windows
    """

    def __init__(self, calculator: KPICalculator):
        self.calculator = calculator
        self.logger = structlog.get_logger()

    def compare(self, window: TimeWindow, period_length_days: int) -> ComparisonResult:
        """
        Compare ``window`` against the ``period_length_days`` before it.

        Args:
            window: Current period
            period_length_days: Length of the previous period, 1..max_period_days

        Returns:
            ComparisonResult with both snapshots, deltas and period labels

        Raises:
            InvalidParameter: period_length_days out of range
            DataUnavailable: Store unreachable for either window
        """
        check_period_days(period_length_days, "period_length_days")

        previous_window = window.preceding(period_length_days)
        current = self.calculator.compute(window)
        previous = self.calculator.compute(previous_window)
        current_label, previous_label = period_labels(period_length_days)

        result = ComparisonResult(
            current=current,
            previous=previous,
            deltas=compute_deltas(current, previous),
            current_period=current_label,
            previous_period=previous_label,
            period_days=period_length_days,
        )

        self.logger.info(
            "period_comparison_complete",
            period_days=period_length_days,
            gtv_delta=result.deltas["gtv"],
            success_rate_delta=result.deltas["success_rate"],
        )
        return result

    def compare_trailing(
        self, period_days: int, now: Optional[datetime] = None
    ) -> ComparisonResult:
        """Compare the trailing ``period_days`` ending ``now`` with the period before."""
        check_period_days(period_days)
        return self.compare(TimeWindow.trailing_days(period_days, now=now), period_days)
