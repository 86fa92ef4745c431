"""
Notifications router.

Wired to:
- NotificationCenter for listing, read state and cleanup
- ThresholdEvaluator for on-demand threshold evaluation
"""

from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from paydash.config import get_settings
from paydash.engine.alerts import NotificationCenter, ThresholdEvaluator, rule_table_from_settings
from paydash.engine.kpi_calculator import KPICalculator
from paydash.engine.period_comparator import PeriodComparator
from paydash.storage import get_storage
from paydash.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def build_notification_center() -> NotificationCenter:
    settings = get_settings()
    return NotificationCenter(
        store=get_storage(),
        max_returned=settings.notification_max_returned,
        retention_days=settings.notification_retention_days,
    )


def build_threshold_evaluator() -> ThresholdEvaluator:
    """Evaluator over the shared storage with the configured rule table."""
    settings = get_settings()
    storage = get_storage()
    return ThresholdEvaluator(
        comparator=PeriodComparator(calculator=KPICalculator(store=storage)),
        metric_store=storage,
        notification_store=storage,
        rules=rule_table_from_settings(settings),
        comparison_days=settings.notification_comparison_days,
    )


@router.get("/")
async def list_notifications(limit: Optional[int] = None):
    """Most recent notifications with unread and total counts."""
    result = build_notification_center().list_recent(limit)
    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/unread-count")
async def get_unread_count():
    """Number of unread notifications."""
    return {"success": True, "data": {"unread_count": build_notification_center().unread_count()}}


@router.post("/{notification_id}/read")
async def mark_notification_read(notification_id: int):
    """Mark one notification read; 404 for unknown ids."""
    build_notification_center().mark_read(notification_id)
    return {"success": True, "data": {"notification_id": notification_id, "read": True}}


@router.post("/read-all")
async def mark_all_notifications_read():
    """Mark every unread notification read."""
    updated = build_notification_center().mark_all_read()
    return {"success": True, "data": {"updated": updated}}


@router.post("/generate")
async def generate_notifications():
    """
    Run one threshold evaluation cycle now.

    Responds 503 when any rule could not be evaluated so that callers
    retry; fired notifications from the other rules are kept.
    """
    report = build_threshold_evaluator().run_cycle()
    body = {
        "success": not report.failed,
        "data": {
            **report.summary(),
            "outcomes": [o.model_dump(mode="json") for o in report.outcomes],
        },
    }
    if report.failed:
        logger.error(
            "notification_generation_incomplete",
            failed_rules=[o.rule_id for o in report.failed],
        )
        return JSONResponse(status_code=503, content={**body, "error": "data_unavailable"})
    return body


@router.post("/cleanup")
async def cleanup_notifications():
    """Delete read notifications older than the retention period."""
    deleted = build_notification_center().cleanup()
    return {"success": True, "data": {"deleted": deleted}}
