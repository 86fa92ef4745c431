"""
Analytics Exporter: render report datasets as downloadable CSV or JSON.

CSV files carry a header row; JSON files wrap the rows with the metric name,
description, date range and export timestamp.
"""

import csv
import io
import json
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from paydash.models.analytics import TimeWindow
from paydash.models.enums import BreakdownDimension, ExportFormat, ExportMetric

from .breakdown import BreakdownAggregator
from .reports import ReportService

logger = structlog.get_logger()

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
}

METRIC_INFO = {
    ExportMetric.TRANSACTIONS_SUMMARY: (
        "Transactions Summary",
        "Daily transaction statistics including counts, amounts and success rates",
    ),
    ExportMetric.REVENUE_SUMMARY: (
        "Revenue Summary",
        "Daily revenue from successful payments",
    ),
    ExportMetric.FAILED_TRANSACTIONS: (
        "Failed Transactions",
        "Transaction counts and shares by status",
    ),
    ExportMetric.PAYMENT_METHOD_BREAKDOWN: (
        "Payment Method Breakdown",
        "Transaction amounts and counts by payment method",
    ),
}

CSV_COLUMNS = {
    ExportMetric.TRANSACTIONS_SUMMARY: [
        ("Date", "day"),
        ("Total Transactions", "total_transactions"),
        ("Total Amount", "total_amount"),
        ("Successful Transactions", "successful_transactions"),
        ("Successful Amount", "successful_amount"),
        ("Failed Transactions", "failed_transactions"),
        ("Success Rate (%)", "success_rate"),
    ],
    ExportMetric.REVENUE_SUMMARY: [
        ("Date", "day"),
        ("Revenue", "revenue"),
    ],
    ExportMetric.FAILED_TRANSACTIONS: [
        ("Status", "label"),
        ("Count", "count"),
        ("Percentage (%)", "percentage_of_total"),
    ],
    ExportMetric.PAYMENT_METHOD_BREAKDOWN: [
        ("Payment Method", "label"),
        ("Total Amount", "amount"),
        ("Transaction Count", "count"),
        ("Average Amount", "average_amount"),
        ("Percentage (%)", "percentage_of_total"),
    ],
}


class ExportArtifact(BaseModel):
    """A rendered export file."""

    filename: str
    content_type: str
    content: bytes


def export_filename(metric: ExportMetric, fmt: ExportFormat, exported_at: datetime) -> str:
    return f"analytics_export_{metric.value.lower()}_{exported_at:%Y%m%d}.{fmt.value}"


class AnalyticsExporter:
    """
    Renders report datasets to files.

    Attributes:
        reports: Source of daily stats and revenue series
        breakdowns: Source of status and payment method breakdowns
    """

    def __init__(self, reports: ReportService, breakdowns: BreakdownAggregator):
        self.reports = reports
        self.breakdowns = breakdowns
        self.logger = structlog.get_logger()

    def export(
        self,
        metric: ExportMetric,
        fmt: ExportFormat,
        window: TimeWindow,
        exported_at: Optional[datetime] = None,
    ) -> ExportArtifact:
        """
        Render ``metric`` over ``window`` as ``fmt``.

        Raises:
            DataUnavailable: Store unreachable while collecting rows
        """
        exported_at = exported_at or datetime.utcnow()
        rows = self._collect(metric, window)

        if fmt == ExportFormat.CSV:
            content = self._to_csv(metric, rows)
        else:
            content = self._to_json(metric, window, rows, exported_at)

        artifact = ExportArtifact(
            filename=export_filename(metric, fmt, exported_at),
            content_type=CONTENT_TYPES[fmt],
            content=content.encode("utf-8"),
        )
        self.logger.info(
            "export_generated",
            metric=metric.value,
            format=fmt.value,
            rows=len(rows),
            filename=artifact.filename,
        )
        return artifact

    def _collect(self, metric: ExportMetric, window: TimeWindow) -> list[dict[str, Any]]:
        if metric == ExportMetric.TRANSACTIONS_SUMMARY:
            items: list[BaseModel] = list(self.reports.daily_stats(window))
        elif metric == ExportMetric.REVENUE_SUMMARY:
            items = list(self.reports.revenue_over_time(window))
        elif metric == ExportMetric.FAILED_TRANSACTIONS:
            items = list(self.breakdowns.breakdown_by(BreakdownDimension.STATUS, window))
        else:
            items = list(self.breakdowns.breakdown_by(BreakdownDimension.PAYMENT_METHOD, window))
        return [item.model_dump(mode="json") for item in items]

    @staticmethod
    def _to_csv(metric: ExportMetric, rows: list[dict[str, Any]]) -> str:
        columns = CSV_COLUMNS[metric]
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([header for header, _ in columns])
        for row in rows:
            writer.writerow(["" if row.get(key) is None else row[key] for _, key in columns])
        return buffer.getvalue()

    @staticmethod
    def _to_json(
        metric: ExportMetric,
        window: TimeWindow,
        rows: list[dict[str, Any]],
        exported_at: datetime,
    ) -> str:
        display_name, description = METRIC_INFO[metric]
        payload = {
            "metric": metric.value,
            "metric_display_name": display_name,
            "description": description,
            "date_range": {
                "start_date": window.start.date().isoformat(),
                "end_date": window.end.date().isoformat(),
            },
            "exported_at": exported_at.isoformat(),
            "data": rows,
        }
        return json.dumps(payload, indent=2)
