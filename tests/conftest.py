"""
Pytest configuration and shared fixtures for the paydash test suite.

Provides ledger row factories, an in-memory MockStorage implementing both
storage contracts, environment isolation and a FastAPI test client shared
by the unit, integration, golden and property-based suites.
"""

import os
import tempfile
import uuid as _uuid
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing the app. DuckDB creates the file;
# :memory: would give each thread its own database.
_test_db_path = os.path.join(tempfile.gettempdir(), f"paydash_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["NOTIFICATIONS_ENABLED"] = "false"

from paydash.errors import DataUnavailable
from paydash.models.analytics import (
    AggregateFilters,
    GroupedRow,
    KPISnapshot,
    RawAggregates,
    TimeWindow,
    TopNRow,
    TransactionQuery,
    TransactionRow,
)
from paydash.models.enums import (
    BreakdownDimension,
    NotificationSeverity,
    NotificationType,
    PaymentMethod,
    TopNMetric,
    TransactionStatus,
    TransactionType,
    UserStatus,
)
from paydash.models.notifications import Notification
from paydash.storage.base import MetricStore, NotificationStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_user(
    full_name: str = "Test User",
    email: Optional[str] = None,
    status: UserStatus = UserStatus.ACTIVE,
    created_at: Optional[datetime] = None,
    **overrides,
) -> dict:
    """Factory for user rows as accepted by MetricStore.write_users."""
    user_id = overrides.pop("id", str(_uuid.uuid4()))
    row = dict(
        id=user_id,
        full_name=full_name,
        email=email or f"user_{user_id[:8]}@example.com",
        status=status.value,
        phone_number=None,
        created_at=created_at or FIXED_NOW - timedelta(days=365),
    )
    row.update(overrides)
    return row


def make_transaction(
    user_id: str,
    amount: str = "100.00",
    status: TransactionStatus = TransactionStatus.SUCCESS,
    transaction_type: TransactionType = TransactionType.PAYMENT,
    payment_method: Optional[PaymentMethod] = PaymentMethod.UPI,
    created_at: Optional[datetime] = None,
    **overrides,
) -> dict:
    """Factory for transaction rows as accepted by MetricStore.write_transactions."""
    row = dict(
        id=str(_uuid.uuid4()),
        user_id=user_id,
        amount=Decimal(amount),
        currency="INR",
        type=transaction_type.value,
        status=status.value,
        payment_method=payment_method.value if payment_method else None,
        payment_provider=None,
        failure_reason="INSUFFICIENT_FUNDS" if status == TransactionStatus.FAILED else None,
        created_at=created_at or FIXED_NOW - timedelta(hours=1),
    )
    row.update(overrides)
    return row


def make_raw_aggregates(**overrides) -> RawAggregates:
    """Factory for RawAggregates with a small healthy window by default."""
    defaults = dict(
        total_count=10,
        pending_count=1,
        success_count=8,
        failed_count=1,
        cancelled_count=0,
        successful_payment_count=8,
        successful_payment_sum=Decimal("800.00"),
        failed_sum=Decimal("50.00"),
        new_users=2,
    )
    defaults.update(overrides)
    return RawAggregates(**defaults)


def make_snapshot(window: Optional[TimeWindow] = None, **overrides) -> KPISnapshot:
    """Factory for KPISnapshot objects."""
    defaults = dict(
        window=window or TimeWindow.trailing_days(1, now=FIXED_NOW),
        total_users_cumulative=100,
        total_transactions=10,
        new_users_in_window=2,
        pending_transactions=1,
        gtv=Decimal("800.00"),
        success_rate=80.0,
        average_ticket_size=Decimal("100.00"),
        failed_transaction_count=1,
        failed_volume=Decimal("50.00"),
    )
    defaults.update(overrides)
    return KPISnapshot(**defaults)


def build_status_ledger(
    storage,
    day: datetime,
    success: int = 114,
    failed: int = 11,
    pending: int = 6,
    cancelled: int = 1,
) -> dict:
    """
    Write a one-day ledger with the given status counts.

    Three users: alice and bob pre-date ``day``, carol (INACTIVE) signs up
    at 08:00 on it. Successes are 100.00 PAYMENTs at 10:xx, the first 70 by
    alice and the rest by bob, the first 60 paid by UPI and the rest by
    CREDIT_CARD. Failures are 50.00 WALLET payments by carol at 14:xx,
    pendings are 20.00 UPI by bob at 18:xx, cancels are 10.00 with no
    payment method by alice at 23:xx.

    Returns:
        Users keyed by first name
    """
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    users = {
        "alice": make_user("Alice Rao", "alice@example.com", created_at=start - timedelta(days=60)),
        "bob": make_user("Bob Shah", "bob@example.com", created_at=start - timedelta(days=30)),
        "carol": make_user(
            "Carol Iyer",
            "carol@example.com",
            status=UserStatus.INACTIVE,
            created_at=start + timedelta(hours=8),
        ),
    }
    storage.write_users(list(users.values()))

    rows = []
    for i in range(success):
        rows.append(
            make_transaction(
                users["alice"]["id"] if i < 70 else users["bob"]["id"],
                amount="100.00",
                payment_method=PaymentMethod.UPI if i < 60 else PaymentMethod.CREDIT_CARD,
                created_at=start + timedelta(hours=10, minutes=i % 60),
            )
        )
    for i in range(failed):
        rows.append(
            make_transaction(
                users["carol"]["id"],
                amount="50.00",
                status=TransactionStatus.FAILED,
                payment_method=PaymentMethod.WALLET,
                created_at=start + timedelta(hours=14, minutes=i),
            )
        )
    for i in range(pending):
        rows.append(
            make_transaction(
                users["bob"]["id"],
                amount="20.00",
                status=TransactionStatus.PENDING,
                created_at=start + timedelta(hours=18, minutes=i),
            )
        )
    for i in range(cancelled):
        rows.append(
            make_transaction(
                users["alice"]["id"],
                amount="10.00",
                status=TransactionStatus.CANCELLED,
                payment_method=None,
                created_at=start + timedelta(hours=23, minutes=i),
            )
        )
    storage.write_transactions(rows)
    return users


# ---------------------------------------------------------------------------
# Mock storage: in-memory MetricStore and NotificationStore for unit tests
# ---------------------------------------------------------------------------


class MockStorage(MetricStore, NotificationStore):
    """
    In-memory implementation of both storage contracts.

    Mirrors the DuckDB backend's semantics (inclusive windows, half-open
    new-user counts, "UNKNOWN" payment method label, id tie-breaks).
    Operations named in ``fail_on`` raise DataUnavailable.
    """

    def __init__(self):
        self.users: list[dict] = []
        self.transactions: list[dict] = []
        self.notifications: list[Notification] = []
        self.fail_on: set[str] = set()
        self.calls: list[str] = []
        self._next_id = 1

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise DataUnavailable(f"{operation} failed: simulated outage")

    def _in_window(self, window: TimeWindow) -> list[dict]:
        return [t for t in self.transactions if window.start <= t["created_at"] <= window.end]

    # --- MetricStore ---
    def aggregate(self, window, filters: Optional[AggregateFilters] = None) -> RawAggregates:
        self._call("aggregate")
        rows = self._in_window(window)
        if filters is not None:
            if filters.status:
                rows = [t for t in rows if t["status"] == filters.status.value]
            if filters.transaction_type:
                rows = [t for t in rows if t["type"] == filters.transaction_type.value]
            if filters.payment_method:
                rows = [t for t in rows if t["payment_method"] == filters.payment_method.value]

        def count(status):
            return sum(1 for t in rows if t["status"] == status)

        payments = [t for t in rows if t["status"] == "SUCCESS" and t["type"] == "PAYMENT"]
        return RawAggregates(
            total_count=len(rows),
            pending_count=count("PENDING"),
            success_count=count("SUCCESS"),
            failed_count=count("FAILED"),
            cancelled_count=count("CANCELLED"),
            successful_payment_count=len(payments),
            successful_payment_sum=sum((t["amount"] for t in payments), Decimal(0)),
            failed_sum=sum((t["amount"] for t in rows if t["status"] == "FAILED"), Decimal(0)),
            new_users=self.count_new_users(window),
        )

    @staticmethod
    def _label(t: dict, dimension: BreakdownDimension) -> str:
        if dimension in (BreakdownDimension.STATUS, BreakdownDimension.FUNNEL_STAGE):
            return t["status"]
        if dimension == BreakdownDimension.PAYMENT_METHOD:
            return t["payment_method"] or "UNKNOWN"
        if dimension == BreakdownDimension.HOUR_OF_DAY:
            return str(t["created_at"].hour)
        return t["type"]

    def grouped_aggregate(self, window, dimension) -> list[GroupedRow]:
        self._call("grouped_aggregate")
        groups: dict[str, list[dict]] = defaultdict(list)
        for t in self._in_window(window):
            groups[self._label(t, dimension)].append(t)
        return [
            GroupedRow(
                label=label,
                count=len(rows),
                amount=sum((t["amount"] for t in rows), Decimal(0)),
                success_count=sum(1 for t in rows if t["status"] == "SUCCESS"),
                success_amount=sum(
                    (t["amount"] for t in rows if t["status"] == "SUCCESS"), Decimal(0)
                ),
            )
            for label, rows in groups.items()
        ]

    def top_n(self, window, metric, n) -> list[TopNRow]:
        self._call("top_n")
        users = {u["id"]: u for u in self.users}
        totals: dict[str, list] = {}
        for t in self._in_window(window):
            if t["status"] != "SUCCESS" or t["type"] != "PAYMENT" or t["user_id"] not in users:
                continue
            entry = totals.setdefault(t["user_id"], [0, Decimal(0)])
            entry[0] += 1
            entry[1] += t["amount"]
        if metric == TopNMetric.REVENUE:
            ranked = sorted(totals.items(), key=lambda kv: (-kv[1][1], kv[0]))
        else:
            ranked = sorted(totals.items(), key=lambda kv: (-kv[1][0], -kv[1][1], kv[0]))
        return [
            TopNRow(
                entity_id=user_id,
                entity_label=users[user_id]["full_name"],
                entity_detail=users[user_id]["email"],
                count=count,
                amount=amount,
            )
            for user_id, (count, amount) in ranked[:n]
        ]

    def count_users(self, as_of=None, status=None) -> int:
        self._call("count_users")
        return sum(
            1
            for u in self.users
            if (as_of is None or u["created_at"] <= as_of)
            and (status is None or u["status"] == status.value)
        )

    def count_new_users(self, window) -> int:
        return sum(1 for u in self.users if window.start <= u["created_at"] < window.end)

    def daily_stats(self, window) -> list[dict]:
        self._call("daily_stats")
        days: dict = defaultdict(list)
        for t in self._in_window(window):
            days[t["created_at"].date()].append(t)
        stats = []
        for day in sorted(days):
            rows = days[day]
            success = [t for t in rows if t["status"] == "SUCCESS"]
            stats.append(
                {
                    "day": day,
                    "total_count": len(rows),
                    "total_amount": sum((t["amount"] for t in rows), Decimal(0)),
                    "success_count": len(success),
                    "success_amount": sum((t["amount"] for t in success), Decimal(0)),
                    "successful_payment_amount": sum(
                        (t["amount"] for t in success if t["type"] == "PAYMENT"), Decimal(0)
                    ),
                    "failed_count": sum(1 for t in rows if t["status"] == "FAILED"),
                }
            )
        return stats

    def user_activity(self, window) -> list[dict]:
        self._call("user_activity")
        new_users: dict = defaultdict(int)
        for u in self.users:
            if window.start <= u["created_at"] <= window.end:
                new_users[u["created_at"].date()] += 1
        active: dict = defaultdict(set)
        for t in self._in_window(window):
            active[t["created_at"].date()].add(t["user_id"])
        return [
            {"day": day, "new_users": new_users.get(day, 0), "active_users": len(active.get(day, ()))}
            for day in sorted(set(new_users) | set(active))
        ]

    def find_transactions(self, query: TransactionQuery) -> tuple[list[TransactionRow], int]:
        self._call("find_transactions")
        users = {u["id"]: u for u in self.users}
        rows = []
        for t in self.transactions:
            user = users.get(t["user_id"], {})
            if query.email and query.email.strip().lower() not in (user.get("email") or "").lower():
                continue
            if query.status and t["status"] != query.status.value:
                continue
            if query.payment_method and t["payment_method"] != query.payment_method.value:
                continue
            if query.transaction_type and t["type"] != query.transaction_type.value:
                continue
            if query.min_amount is not None and t["amount"] < query.min_amount:
                continue
            if query.max_amount is not None and t["amount"] > query.max_amount:
                continue
            if query.start_date and t["created_at"].date() < query.start_date:
                continue
            if query.end_date and t["created_at"].date() > query.end_date:
                continue
            rows.append((t, user))

        def sort_value(pair):
            t, user = pair
            if query.sort_by == "user_email":
                return user.get("email") or ""
            value = t[query.sort_by]
            return "" if value is None else value

        rows.sort(key=lambda pair: (sort_value(pair), pair[0]["id"]), reverse=query.sort_dir == "desc")
        offset = (query.page - 1) * query.page_size
        page = rows[offset:offset + query.page_size]
        items = [
            TransactionRow(
                id=t["id"],
                user_id=t["user_id"],
                user_email=user.get("email"),
                user_name=user.get("full_name"),
                amount=t["amount"],
                currency=t["currency"],
                transaction_type=TransactionType(t["type"]),
                status=TransactionStatus(t["status"]),
                payment_method=t["payment_method"],
                failure_reason=t["failure_reason"],
                created_at=t["created_at"],
            )
            for t, user in page
        ]
        return items, len(rows)

    def write_users(self, users: list[dict]) -> int:
        self._call("write_users")
        for u in users:
            self.users.append({"status": UserStatus.ACTIVE.value, "phone_number": None, **u})
        return len(users)

    def write_transactions(self, transactions: list[dict]) -> int:
        self._call("write_transactions")
        for t in transactions:
            row = {
                "currency": "INR",
                "type": TransactionType.PAYMENT.value,
                "payment_method": None,
                "payment_provider": None,
                "failure_reason": None,
                **t,
            }
            row["amount"] = Decimal(str(row["amount"]))
            self.transactions.append(row)
        return len(transactions)

    # --- NotificationStore ---
    def exists_since(self, notification_type, since) -> bool:
        self._call("exists_since")
        return any(n.type == notification_type and n.created_at >= since for n in self.notifications)

    def insert_notification(self, notification: Notification) -> int:
        self._call("insert_notification")
        notification_id = self._next_id
        self._next_id += 1
        self.notifications.append(notification.model_copy(update={"id": notification_id}))
        return notification_id

    def mark_read(self, notification_id: int) -> bool:
        self._call("mark_read")
        for i, n in enumerate(self.notifications):
            if n.id == notification_id:
                self.notifications[i] = n.model_copy(update={"read": True})
                return True
        return False

    def mark_all_read(self) -> int:
        self._call("mark_all_read")
        updated = 0
        for i, n in enumerate(self.notifications):
            if not n.read:
                self.notifications[i] = n.model_copy(update={"read": True})
                updated += 1
        return updated

    def list_recent(self, limit: int) -> list[Notification]:
        self._call("list_recent")
        ordered = sorted(self.notifications, key=lambda n: (n.created_at, n.id), reverse=True)
        return ordered[:limit]

    def count_unread(self) -> int:
        return sum(1 for n in self.notifications if not n.read)

    def count_all(self) -> int:
        return len(self.notifications)

    def delete_read_older_than(self, before) -> int:
        self._call("delete_read_older_than")
        kept = [n for n in self.notifications if not (n.read and n.created_at < before)]
        deleted = len(self.notifications) - len(kept)
        self.notifications = kept
        return deleted


def make_notification(
    notification_type: NotificationType = NotificationType.LOW_SUCCESS_RATE,
    severity: NotificationSeverity = NotificationSeverity.WARNING,
    created_at: Optional[datetime] = None,
    **overrides,
) -> Notification:
    """Factory for Notification objects."""
    defaults = dict(
        type=notification_type,
        title="Low Success Rate",
        description="Success rate is 75.00%, below the 80% threshold",
        severity=severity,
        metric_value=75.0,
        threshold_value=80.0,
        comparison_period_label="Last 24 hours",
        created_at=created_at or FIXED_NOW,
    )
    defaults.update(overrides)
    return Notification(**defaults)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_storage():
    """Fresh MockStorage instance for each test."""
    return MockStorage()


@pytest.fixture
def funnel_day():
    """The calendar day holding the 132-transaction status ledger."""
    return datetime(2025, 3, 15)


@pytest.fixture
def funnel_window(funnel_day):
    return TimeWindow.from_dates(funnel_day.date(), funnel_day.date())


@pytest.fixture
def populated_storage(mock_storage, funnel_day):
    """MockStorage holding the 132-transaction status ledger."""
    build_status_ledger(mock_storage, funnel_day)
    return mock_storage


@pytest.fixture
def client():
    """FastAPI test client for integration tests."""
    from paydash.main import app

    with TestClient(app) as c:
        yield c
