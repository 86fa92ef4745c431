"""
Breakdown Aggregator: split a window by a categorical dimension.

Each entry carries its share of the window total. Shares are counted
transactions for every dimension except payment method, where the share is
of total amount. Shares always sum to 100 within 0.1 for non-empty windows.
"""

from decimal import Decimal

import structlog

from paydash.models.analytics import BreakdownEntry, GroupedRow, TimeWindow
from paydash.models.enums import BreakdownDimension, TransactionStatus
from paydash.storage.base import MetricStore
from paydash.utils.numeric import apportion_percentages, percentage, quantize_money

logger = structlog.get_logger()

FUNNEL_ORDER = {
    TransactionStatus.PENDING.value: 0,
    TransactionStatus.SUCCESS.value: 1,
    TransactionStatus.FAILED.value: 2,
}


def _funnel_key(row: GroupedRow) -> tuple[int, str]:
    return FUNNEL_ORDER.get(row.label, len(FUNNEL_ORDER)), row.label


def _average(row: GroupedRow) -> Decimal:
    if row.count == 0:
        return Decimal("0.00")
    return quantize_money(row.amount / Decimal(row.count))


class BreakdownAggregator:
    """
    Produces per-category breakdowns of a window.

    Example:
        >>> aggregator = BreakdownAggregator(store=get_storage())
        >>> funnel = aggregator.breakdown_by(BreakdownDimension.FUNNEL_STAGE, window)
        >>> [e.label for e in funnel]
        ['PENDING', 'SUCCESS', 'FAILED', 'CANCELLED']
    """

    def __init__(self, store: MetricStore):
        self.store = store
        self.logger = structlog.get_logger()

    def breakdown_by(
        self, dimension: BreakdownDimension, window: TimeWindow
    ) -> list[BreakdownEntry]:
        """
        Break ``window`` down by ``dimension``.

        Ordering:
            status: count descending, then label
            funnel_stage: PENDING, SUCCESS, FAILED, then the rest alphabetically
            payment_method: total amount descending, then label
            hour_of_day: hour ascending (empty hours omitted)
            transaction_type: count descending, then label

        Returns:
            Entries, or an empty list when the window holds no transactions

        Raises:
            DataUnavailable: Store unreachable or timed out
        """
        rows = self.store.grouped_aggregate(window, dimension)
        total_count = sum(r.count for r in rows)
        if total_count == 0:
            return []

        if dimension == BreakdownDimension.FUNNEL_STAGE:
            rows = sorted(rows, key=_funnel_key)
        elif dimension == BreakdownDimension.PAYMENT_METHOD:
            rows = sorted(rows, key=lambda r: (-r.amount, r.label))
        elif dimension == BreakdownDimension.HOUR_OF_DAY:
            rows = sorted(rows, key=lambda r: int(r.label))
        else:
            rows = sorted(rows, key=lambda r: (-r.count, r.label))

        if dimension == BreakdownDimension.PAYMENT_METHOD:
            total_amount = sum((r.amount for r in rows), Decimal(0))
            if total_amount > 0:
                shares = apportion_percentages([r.amount for r in rows], total_amount)
            else:
                shares = apportion_percentages([r.count for r in rows], total_count)
        else:
            shares = apportion_percentages([r.count for r in rows], total_count)

        entries = [
            self._to_entry(dimension, row, share) for row, share in zip(rows, shares)
        ]

        self.logger.info(
            "breakdown_computed",
            dimension=dimension.value,
            buckets=len(entries),
            total_count=total_count,
        )
        return entries

    @staticmethod
    def _to_entry(dimension: BreakdownDimension, row: GroupedRow, share: float) -> BreakdownEntry:
        entry = {
            "label": row.label,
            "count": row.count,
            "amount": quantize_money(row.amount),
            "percentage_of_total": share,
        }
        if dimension in (BreakdownDimension.PAYMENT_METHOD, BreakdownDimension.TRANSACTION_TYPE):
            entry["average_amount"] = _average(row)
        if dimension == BreakdownDimension.HOUR_OF_DAY:
            entry["success_count"] = row.success_count
            entry["success_rate"] = percentage(row.success_count, row.count)
        return BreakdownEntry(**entry)
