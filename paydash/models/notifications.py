"""
Threshold rule and notification models.

Rules are static configuration built once at startup; notifications are the
persisted outcome of a rule firing.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ComparisonOperator, NotificationSeverity, NotificationType


class ThresholdRule(BaseModel):
    """
    A single threshold condition evaluated each cycle.

    Attributes:
        rule_id: Stable identifier, e.g. "revenue_drop_critical"
        metric_key: Metric reference: "current.<kpi>", "delta.<kpi>" or "volume_ratio_30d"
        operator: Comparison applied as ``metric <op> threshold``
        threshold_value: Threshold the metric is compared against
        severity: Severity of the notification written on fire
        cooldown: Duplicate suppression window for the notification type
        notification_type: Type used for deduplication
        title: Notification title
    """

    model_config = ConfigDict(frozen=True)

    rule_id: str
    metric_key: str
    operator: ComparisonOperator
    threshold_value: float
    severity: NotificationSeverity
    cooldown: timedelta
    notification_type: NotificationType
    title: str

    @field_validator("metric_key")
    @classmethod
    def validate_metric_key(cls, v: str) -> str:
        """Metric key must use a known namespace."""
        if not (v.startswith("current.") or v.startswith("delta.") or v == "volume_ratio_30d"):
            raise ValueError(f"Unsupported metric key: {v}")
        return v


class Notification(BaseModel):
    """
    A fired threshold notification.

    ``id`` is assigned by the notification store on insert.
    """

    id: Optional[int] = None
    type: NotificationType
    title: str
    description: str
    severity: NotificationSeverity
    read: bool = False
    metric_value: Optional[float] = None
    threshold_value: Optional[float] = None
    comparison_period_label: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 42,
                "type": "REVENUE_DROP",
                "title": "Revenue Drop Alert",
                "description": "GTV dropped 27.5% compared to the previous period",
                "severity": "WARNING",
                "read": False,
                "metric_value": -27.5,
                "threshold_value": -20.0,
                "comparison_period_label": "Last 24 hours",
                "created_at": "2026-10-19T09:00:00",
            }
        }


class NotificationList(BaseModel):
    """Recent notifications plus unread and total counts."""

    notifications: list[Notification]
    unread_count: int
    total_count: int


class RuleOutcome(BaseModel):
    """What happened to one rule during an evaluation cycle."""

    rule_id: str
    notification_type: NotificationType
    state: str = Field(description="fired | suppressed | not_triggered | skipped | failed")
    metric_value: Optional[float] = None
    notification_id: Optional[int] = None
    error: Optional[str] = None


class EvaluationReport(BaseModel):
    """Result of one threshold evaluation cycle."""

    evaluated_at: datetime
    outcomes: list[RuleOutcome] = Field(default_factory=list)

    def _with_state(self, state: str) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.state == state]

    @property
    def fired(self) -> list[RuleOutcome]:
        return self._with_state("fired")

    @property
    def suppressed(self) -> list[RuleOutcome]:
        return self._with_state("suppressed")

    @property
    def not_triggered(self) -> list[RuleOutcome]:
        return self._with_state("not_triggered")

    @property
    def skipped(self) -> list[RuleOutcome]:
        return self._with_state("skipped")

    @property
    def failed(self) -> list[RuleOutcome]:
        return self._with_state("failed")

    def summary(self) -> dict:
        return {
            "evaluated_at": self.evaluated_at.isoformat(),
            "fired": len(self.fired),
            "suppressed": len(self.suppressed),
            "not_triggered": len(self.not_triggered),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }
