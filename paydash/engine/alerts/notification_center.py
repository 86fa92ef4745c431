"""
Notification Center: read side and housekeeping for notifications.

Lists recent notifications with unread/total counts, marks them read, and
deletes read notifications past the retention period.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from paydash.errors import InvalidParameter, NotFound
from paydash.models.notifications import NotificationList
from paydash.storage.base import NotificationStore

logger = structlog.get_logger()


class NotificationCenter:
    """
    Notification listing and lifecycle operations.

    Attributes:
        store: NotificationStore backing the center
        max_returned: Upper bound on notifications listed at once
        retention_days: Age after which read notifications are deleted
    """

    def __init__(self, store: NotificationStore, max_returned: int = 50, retention_days: int = 30):
        self.store = store
        self.max_returned = max_returned
        self.retention_days = retention_days
        self.logger = structlog.get_logger()

    def list_recent(self, limit: Optional[int] = None) -> NotificationList:
        """
        Most recent notifications with unread and total counts.

        Raises:
            InvalidParameter: limit outside 1..max_returned
        """
        limit = self.max_returned if limit is None else limit
        if limit < 1 or limit > self.max_returned:
            raise InvalidParameter(
                f"limit must be between 1 and {self.max_returned}, got {limit}"
            )
        return NotificationList(
            notifications=self.store.list_recent(limit),
            unread_count=self.store.count_unread(),
            total_count=self.store.count_all(),
        )

    def unread_count(self) -> int:
        return self.store.count_unread()

    def mark_read(self, notification_id: int) -> None:
        """
        Mark one notification read.

        Raises:
            NotFound: Unknown notification id
        """
        if not self.store.mark_read(notification_id):
            self.logger.warning("notification_not_found", notification_id=notification_id)
            raise NotFound(f"Notification {notification_id} not found")
        self.logger.info("notification_marked_read", notification_id=notification_id)

    def mark_all_read(self) -> int:
        updated = self.store.mark_all_read()
        self.logger.info("notifications_marked_read", count=updated)
        return updated

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Delete read notifications older than the retention period."""
        cutoff = (now or datetime.utcnow()) - timedelta(days=self.retention_days)
        deleted = self.store.delete_read_older_than(cutoff)
        self.logger.info(
            "notifications_cleaned_up",
            deleted=deleted,
            retention_days=self.retention_days,
        )
        return deleted
