"""
Threshold Evaluator: rule table evaluation with cooldown deduplication.

Each cycle walks the rule table in order. For every rule:

    Idle -> Evaluating -> Fired | Suppressed -> Idle

Evaluating resolves the rule's metric against a per-cycle comparison of
the trailing period with the one before it (computed lazily, once per
cycle) and applies the rule's operator. A rule fires only when no
notification of its type exists within its cooldown; the notification is
written with one insert. A rule whose metric is undefined this cycle (no
previous data, no transactions) is skipped without side effects. A rule
whose store access fails is recorded as failed and never writes; the other
rules still run.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from paydash.models.analytics import ComparisonResult
from paydash.models.enums import NotificationType
from paydash.models.notifications import EvaluationReport, Notification, RuleOutcome, ThresholdRule
from paydash.storage.base import MetricStore, NotificationStore
from paydash.utils.numeric import round_half_up, to_decimal

from ..period_comparator import PeriodComparator

logger = structlog.get_logger()

BASELINE_DAYS = 30


def describe(rule: ThresholdRule, value: float) -> str:
    """Human description of a firing condition."""
    t = rule.notification_type
    if t == NotificationType.REVENUE_DROP:
        return (
            f"GTV dropped {abs(value):.2f}% compared to the previous period "
            f"(threshold: {abs(rule.threshold_value):.0f}%)"
        )
    if t == NotificationType.FAILED_TRANSACTION_SPIKE:
        return (
            f"Failed transactions increased {value:.2f}% compared to the previous period "
            f"(threshold: {rule.threshold_value:.0f}%)"
        )
    if t == NotificationType.LOW_SUCCESS_RATE:
        return (
            f"Success rate is {value:.2f}%, below the {rule.threshold_value:.0f}% threshold"
        )
    if t == NotificationType.HIGH_PENDING_TRANSACTIONS:
        return (
            f"{int(value)} transactions are pending "
            f"(threshold: {int(rule.threshold_value)})"
        )
    return (
        f"Transaction volume is {value:.2f}x the {BASELINE_DAYS}-day daily average "
        f"(threshold: {rule.threshold_value}x)"
    )


class CycleContext:
    """
    Lazily computed inputs shared by all rules of one cycle.

    Results (and failures) are memoised so each store query runs at most
    once per cycle.
    """

    def __init__(
        self,
        comparator: PeriodComparator,
        metric_store: MetricStore,
        now: datetime,
        comparison_days: int,
    ):
        self.comparator = comparator
        self.metric_store = metric_store
        self.now = now
        self.comparison_days = comparison_days
        self._comparison: Optional[ComparisonResult] = None
        self._comparison_error: Optional[Exception] = None
        self._volume_ratio: Optional[float] = None
        self._volume_ratio_resolved = False

    def comparison(self) -> ComparisonResult:
        if self._comparison_error is not None:
            raise self._comparison_error
        if self._comparison is None:
            try:
                self._comparison = self.comparator.compare_trailing(
                    self.comparison_days, now=self.now
                )
            except Exception as e:
                self._comparison_error = e
                raise
        return self._comparison

    def volume_ratio(self) -> Optional[float]:
        """
        Current period volume over the average volume of an equal-length
        period across the 30 days before the current period starts. None
        when that baseline holds no transactions.
        """
        if not self._volume_ratio_resolved:
            current = self.comparison().current
            baseline = self.metric_store.aggregate(current.window.preceding(BASELINE_DAYS))
            if baseline.total_count == 0:
                self._volume_ratio = None
            else:
                expected = (
                    Decimal(baseline.total_count)
                    / Decimal(BASELINE_DAYS)
                    * Decimal(self.comparison_days)
                )
                self._volume_ratio = round_half_up(Decimal(current.total_transactions) / expected)
            self._volume_ratio_resolved = True
        return self._volume_ratio

    def resolve(self, metric_key: str) -> Optional[float]:
        """Metric value for ``metric_key``, or None when undefined this cycle."""
        if metric_key == "volume_ratio_30d":
            return self.volume_ratio()

        namespace, _, metric = metric_key.partition(".")
        comparison = self.comparison()
        if namespace == "delta":
            return comparison.deltas.get(metric)

        current = comparison.current
        if metric == "success_rate" and current.total_transactions == 0:
            return None
        return float(to_decimal(getattr(current, metric)))

    def period_label(self, rule: ThresholdRule) -> str:
        comparison = self.comparison()
        if rule.metric_key.startswith("delta."):
            return f"{comparison.current_period} vs {comparison.previous_period}"
        if rule.metric_key == "volume_ratio_30d":
            return f"{comparison.current_period} vs {BASELINE_DAYS}-day average"
        return comparison.current_period


class ThresholdEvaluator:
    """
    Evaluates the rule table and writes deduplicated notifications.

    Attributes:
        comparator: PeriodComparator for current vs previous period metrics
        metric_store: MetricStore used for the 30-day volume baseline
        notification_store: NotificationStore for dedup checks and writes
        rules: Immutable, ordered rule table
        comparison_days: Length of the compared periods

    Example:
        >>> evaluator = ThresholdEvaluator(comparator, storage, storage, build_rule_table())
        >>> report = evaluator.run_cycle()
        >>> [o.rule_id for o in report.fired]
        ['low_success_rate_critical']
    """

    def __init__(
        self,
        comparator: PeriodComparator,
        metric_store: MetricStore,
        notification_store: NotificationStore,
        rules: tuple[ThresholdRule, ...],
        comparison_days: int = 1,
    ):
        self.comparator = comparator
        self.metric_store = metric_store
        self.notification_store = notification_store
        self.rules = tuple(rules)
        self.comparison_days = comparison_days
        self.logger = structlog.get_logger()

    def run_cycle(self, now: Optional[datetime] = None) -> EvaluationReport:
        """
        Evaluate every rule once.

        Returns:
            EvaluationReport; callers should treat a non-empty ``failed``
            list as a cycle to retry on the next tick.
        """
        now = now or datetime.utcnow()
        context = CycleContext(self.comparator, self.metric_store, now, self.comparison_days)

        self.logger.info("threshold_evaluation_started", rule_count=len(self.rules))

        report = EvaluationReport(evaluated_at=now)
        for rule in self.rules:
            try:
                outcome = self.evaluate_rule(rule, context)
            except Exception as e:
                self.logger.error(
                    "threshold_rule_failed",
                    rule_id=rule.rule_id,
                    notification_type=rule.notification_type.value,
                    error=str(e),
                )
                outcome = RuleOutcome(
                    rule_id=rule.rule_id,
                    notification_type=rule.notification_type,
                    state="failed",
                    error=str(e),
                )
            report.outcomes.append(outcome)

        self.logger.info("threshold_evaluation_complete", **report.summary())
        return report

    def evaluate_rule(self, rule: ThresholdRule, context: CycleContext) -> RuleOutcome:
        """
        Run one rule through Evaluating -> Fired | Suppressed.

        Raises:
            DataUnavailable: Metric or notification store unreachable
        """
        value = context.resolve(rule.metric_key)
        if value is None:
            self.logger.debug("threshold_rule_not_applicable", rule_id=rule.rule_id)
            return RuleOutcome(
                rule_id=rule.rule_id, notification_type=rule.notification_type, state="skipped"
            )

        if not rule.operator.holds(value, rule.threshold_value):
            return RuleOutcome(
                rule_id=rule.rule_id,
                notification_type=rule.notification_type,
                state="not_triggered",
                metric_value=value,
            )

        since = context.now - rule.cooldown
        if self.notification_store.exists_since(rule.notification_type, since):
            self.logger.info(
                "notification_suppressed",
                rule_id=rule.rule_id,
                notification_type=rule.notification_type.value,
                cooldown_hours=rule.cooldown / timedelta(hours=1),
            )
            return RuleOutcome(
                rule_id=rule.rule_id,
                notification_type=rule.notification_type,
                state="suppressed",
                metric_value=value,
            )

        notification = Notification(
            type=rule.notification_type,
            title=rule.title,
            description=describe(rule, value),
            severity=rule.severity,
            read=False,
            metric_value=value,
            threshold_value=rule.threshold_value,
            comparison_period_label=context.period_label(rule),
            created_at=context.now,
        )
        notification_id = self.notification_store.insert_notification(notification)

        self.logger.info(
            "notification_fired",
            rule_id=rule.rule_id,
            notification_id=notification_id,
            severity=rule.severity.value,
            metric_value=value,
            threshold=rule.threshold_value,
        )
        return RuleOutcome(
            rule_id=rule.rule_id,
            notification_type=rule.notification_type,
            state="fired",
            metric_value=value,
            notification_id=notification_id,
        )
