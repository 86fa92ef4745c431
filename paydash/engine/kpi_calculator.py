"""
KPI Calculator: the canonical KPI set for an arbitrary window.

Pulls raw counts and sums from the MetricStore and derives the ratio
metrics in Decimal. Division-by-zero policy is explicit per metric:
success rate and average ticket size are 0 for windows without data.
"""

from decimal import Decimal

import structlog

from paydash.models.analytics import KPISnapshot, RawAggregates, TimeWindow
from paydash.storage.base import MetricStore
from paydash.utils.numeric import percentage, quantize_money

logger = structlog.get_logger()


def derive_kpis(raw: RawAggregates, total_users_cumulative: int, window: TimeWindow) -> KPISnapshot:
    """
    Build a KPISnapshot from raw aggregates.

    Args:
        raw: Counts and sums for the window
        total_users_cumulative: Users created at or before window end
        window: Window the aggregates were computed for

    Returns:
        KPISnapshot with success_rate in [0, 100]
    """
    if raw.successful_payment_count == 0:
        average_ticket = Decimal("0.00")
    else:
        average_ticket = quantize_money(
            raw.successful_payment_sum / Decimal(raw.successful_payment_count)
        )

    return KPISnapshot(
        window=window,
        total_users_cumulative=total_users_cumulative,
        total_transactions=raw.total_count,
        new_users_in_window=raw.new_users,
        pending_transactions=raw.pending_count,
        gtv=quantize_money(raw.successful_payment_sum),
        success_rate=percentage(raw.success_count, raw.total_count),
        average_ticket_size=average_ticket,
        failed_transaction_count=raw.failed_count,
        failed_volume=quantize_money(raw.failed_sum),
    )


class KPICalculator:
    """
    Computes KPI snapshots from a MetricStore.

    Stateless apart from the store reference; two calls with the same window
    over unchanged data return equal snapshots.

    Example:
        >>> calculator = KPICalculator(store=get_storage())
        >>> snapshot = calculator.compute(TimeWindow.trailing_days(30))
        >>> snapshot.success_rate
        86.36
    """

    def __init__(self, store: MetricStore):
        self.store = store
        self.logger = structlog.get_logger()

    def compute(self, window: TimeWindow) -> KPISnapshot:
        """
        Compute the 9 canonical KPIs for ``window``.

        Raises:
            DataUnavailable: Store unreachable or timed out. Empty windows
                never raise.
        """
        raw = self.store.aggregate(window)
        total_users = self.store.count_users(as_of=window.end)
        snapshot = derive_kpis(raw, total_users, window)

        self.logger.info(
            "kpis_computed",
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
            total_transactions=snapshot.total_transactions,
            success_rate=snapshot.success_rate,
        )
        return snapshot
