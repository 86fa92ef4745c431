"""
Error taxonomy for the analytics engine.

Every error carries the HTTP status and machine-readable code it maps to, so
the application exception handler can render it without a lookup table.
"""


class AnalyticsError(Exception):
    """Base class for all analytics engine failures."""

    status_code = 500
    code = "analytics_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRange(AnalyticsError):
    """Window start is after window end."""

    status_code = 400
    code = "invalid_range"


class InvalidParameter(AnalyticsError):
    """Out-of-bounds limit, page, size, period length or amount filter."""

    status_code = 400
    code = "invalid_parameter"


class DataUnavailable(AnalyticsError):
    """Metric store unreachable, failing, or timed out."""

    status_code = 503
    code = "data_unavailable"


class NotFound(AnalyticsError):
    """Referenced record does not exist."""

    status_code = 404
    code = "not_found"
