"""
Threshold alerting.

Components:
    ThresholdEvaluator: Evaluates the rule table and writes deduplicated notifications
    NotificationCenter: Lists, marks read and cleans up notifications
    NotificationScheduler: Runs evaluation and cleanup periodically

Example:
    >>> from paydash.engine.alerts import ThresholdEvaluator, build_rule_table
    >>> evaluator = ThresholdEvaluator(comparator, storage, storage, build_rule_table())
    >>> report = evaluator.run_cycle()
"""

from .notification_center import NotificationCenter
from .rules import ThresholdSettings, build_rule_table, rule_table_from_settings
from .scheduler import NotificationScheduler
from .threshold_evaluator import ThresholdEvaluator

__all__ = [
    "NotificationCenter",
    "NotificationScheduler",
    "ThresholdEvaluator",
    "ThresholdSettings",
    "build_rule_table",
    "rule_table_from_settings",
]
