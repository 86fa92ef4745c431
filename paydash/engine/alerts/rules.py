"""
Threshold rule table.

The table is static configuration: it is built once from settings at
startup and handed to the evaluator as an immutable tuple. Within each
notification type the critical rule precedes the warning rule, so when both
match in one cycle the critical one fires and the warning one is
suppressed by the cooldown check.
"""

from dataclasses import dataclass
from datetime import timedelta

from paydash.config import Settings
from paydash.models.enums import ComparisonOperator, NotificationSeverity, NotificationType
from paydash.models.notifications import ThresholdRule


@dataclass(frozen=True)
class ThresholdSettings:
    """
    Threshold values for the default rule table.

    Drop and spike thresholds are percentages (20.0 = 20%); success rate
    thresholds are percentage points; pending thresholds are counts.
    """

    revenue_drop_warning_pct: float = 20.0
    revenue_drop_critical_pct: float = 40.0
    failed_spike_warning_pct: float = 30.0
    failed_spike_critical_pct: float = 50.0
    success_rate_warning: float = 80.0
    success_rate_critical: float = 70.0
    pending_warning_count: int = 100
    pending_critical_count: int = 500
    high_volume_multiplier: float = 1.5
    cooldown_hours: int = 6

    @classmethod
    def from_settings(cls, settings: Settings) -> "ThresholdSettings":
        return cls(
            revenue_drop_warning_pct=settings.revenue_drop_warning_pct,
            revenue_drop_critical_pct=settings.revenue_drop_critical_pct,
            failed_spike_warning_pct=settings.failed_spike_warning_pct,
            failed_spike_critical_pct=settings.failed_spike_critical_pct,
            success_rate_warning=settings.success_rate_warning,
            success_rate_critical=settings.success_rate_critical,
            pending_warning_count=settings.pending_warning_count,
            pending_critical_count=settings.pending_critical_count,
            high_volume_multiplier=settings.high_volume_multiplier,
            cooldown_hours=settings.notification_cooldown_hours,
        )


DEFAULT_THRESHOLDS = ThresholdSettings()

TITLES = {
    NotificationType.REVENUE_DROP: "Revenue Drop Alert",
    NotificationType.FAILED_TRANSACTION_SPIKE: "Failed Transaction Spike",
    NotificationType.LOW_SUCCESS_RATE: "Low Success Rate",
    NotificationType.HIGH_PENDING_TRANSACTIONS: "High Pending Transactions",
    NotificationType.HIGH_VOLUME_DAY: "High Volume Day",
}


def _rule(
    rule_id: str,
    notification_type: NotificationType,
    metric_key: str,
    operator: ComparisonOperator,
    threshold: float,
    severity: NotificationSeverity,
    cooldown: timedelta,
) -> ThresholdRule:
    return ThresholdRule(
        rule_id=rule_id,
        metric_key=metric_key,
        operator=operator,
        threshold_value=threshold,
        severity=severity,
        cooldown=cooldown,
        notification_type=notification_type,
        title=TITLES[notification_type],
    )


def build_rule_table(thresholds: ThresholdSettings = DEFAULT_THRESHOLDS) -> tuple[ThresholdRule, ...]:
    """
    Build the ordered, immutable rule table.

    Args:
        thresholds: Threshold values (defaults match production settings)

    Returns:
        Tuple of ThresholdRule, critical before warning per type
    """
    cooldown = timedelta(hours=thresholds.cooldown_hours)
    t = thresholds

    return (
        _rule(
            "revenue_drop_critical",
            NotificationType.REVENUE_DROP,
            "delta.gtv",
            ComparisonOperator.LTE,
            -t.revenue_drop_critical_pct,
            NotificationSeverity.CRITICAL,
            cooldown,
        ),
        _rule(
            "revenue_drop_warning",
            NotificationType.REVENUE_DROP,
            "delta.gtv",
            ComparisonOperator.LTE,
            -t.revenue_drop_warning_pct,
            NotificationSeverity.WARNING,
            cooldown,
        ),
        _rule(
            "failed_spike_critical",
            NotificationType.FAILED_TRANSACTION_SPIKE,
            "delta.failed_transaction_count",
            ComparisonOperator.GTE,
            t.failed_spike_critical_pct,
            NotificationSeverity.CRITICAL,
            cooldown,
        ),
        _rule(
            "failed_spike_warning",
            NotificationType.FAILED_TRANSACTION_SPIKE,
            "delta.failed_transaction_count",
            ComparisonOperator.GTE,
            t.failed_spike_warning_pct,
            NotificationSeverity.WARNING,
            cooldown,
        ),
        _rule(
            "low_success_rate_critical",
            NotificationType.LOW_SUCCESS_RATE,
            "current.success_rate",
            ComparisonOperator.LT,
            t.success_rate_critical,
            NotificationSeverity.CRITICAL,
            cooldown,
        ),
        _rule(
            "low_success_rate_warning",
            NotificationType.LOW_SUCCESS_RATE,
            "current.success_rate",
            ComparisonOperator.LT,
            t.success_rate_warning,
            NotificationSeverity.WARNING,
            cooldown,
        ),
        _rule(
            "high_pending_critical",
            NotificationType.HIGH_PENDING_TRANSACTIONS,
            "current.pending_transactions",
            ComparisonOperator.GTE,
            t.pending_critical_count,
            NotificationSeverity.CRITICAL,
            cooldown,
        ),
        _rule(
            "high_pending_warning",
            NotificationType.HIGH_PENDING_TRANSACTIONS,
            "current.pending_transactions",
            ComparisonOperator.GTE,
            t.pending_warning_count,
            NotificationSeverity.WARNING,
            cooldown,
        ),
        _rule(
            "high_volume_day",
            NotificationType.HIGH_VOLUME_DAY,
            "volume_ratio_30d",
            ComparisonOperator.GT,
            t.high_volume_multiplier,
            NotificationSeverity.INFO,
            cooldown,
        ),
    )


def rule_table_from_settings(settings: Settings) -> tuple[ThresholdRule, ...]:
    return build_rule_table(ThresholdSettings.from_settings(settings))
