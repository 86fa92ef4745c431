"""
Report export router.

Wired to:
- AnalyticsExporter for CSV / JSON rendering
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from paydash.engine.breakdown import BreakdownAggregator
from paydash.engine.exporter import AnalyticsExporter
from paydash.engine.reports import ReportService
from paydash.engine.windows import parse_range, require_dates
from paydash.models.enums import ExportFormat, ExportMetric
from paydash.storage import get_storage
from paydash.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ExportRequest(BaseModel):
    """Export request."""

    metric: ExportMetric = Field(..., description="Dataset to export")
    format: ExportFormat = Field(default=ExportFormat.CSV, description="csv or json")
    range: Optional[str] = Field(
        default="30d", description="7d, 30d, 90d, all, or a number of days"
    )
    start_date: Optional[date] = Field(default=None, description="Explicit range start")
    end_date: Optional[date] = Field(default=None, description="Explicit range end")


@router.post("/")
async def export_report(request: ExportRequest):
    """Render a report dataset as a downloadable file."""
    if request.start_date or request.end_date:
        window = require_dates(request.start_date, request.end_date)
    else:
        window = parse_range(request.range)

    logger.info(
        "export_requested",
        metric=request.metric.value,
        format=request.format.value,
        range=request.range,
    )

    storage = get_storage()
    exporter = AnalyticsExporter(
        reports=ReportService(store=storage),
        breakdowns=BreakdownAggregator(store=storage),
    )
    artifact = exporter.export(request.metric, request.format, window)

    return Response(
        content=artifact.content,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
