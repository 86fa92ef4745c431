"""
DuckDB storage implementation for the payments analytics engine.

Implements both MetricStore (ledger aggregates) and NotificationStore on a
single local DuckDB file. Aggregation is pushed down into SQL; Python only
shapes the results.

Key features:
- Thread-local connections
- Idempotent schema creation on first use
- Per-query watchdog that interrupts long-running statements
- Every driver failure surfaced as DataUnavailable with structured logging
"""

import os
import threading
from contextlib import contextmanager
from datetime import datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import duckdb
import structlog

from paydash.errors import DataUnavailable
from paydash.models.analytics import (
    AggregateFilters,
    GroupedRow,
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
    TopNMetric,
    TransactionStatus,
    TransactionType,
    UserStatus,
)
from paydash.models.notifications import Notification

from .base import MetricStore, NotificationStore

logger = structlog.get_logger(__name__)

# Grouping expression per breakdown dimension
DIMENSION_COLUMNS = {
    BreakdownDimension.STATUS: "status",
    BreakdownDimension.FUNNEL_STAGE: "status",
    BreakdownDimension.PAYMENT_METHOD: "COALESCE(payment_method, 'UNKNOWN')",
    BreakdownDimension.HOUR_OF_DAY: "CAST(CAST(EXTRACT(HOUR FROM created_at) AS INTEGER) AS VARCHAR)",
    BreakdownDimension.TRANSACTION_TYPE: "type",
}

# ORDER BY column per whitelisted sort field
SORT_COLUMNS = {
    "created_at": "t.created_at",
    "amount": "t.amount",
    "status": "t.status",
    "payment_method": "t.payment_method",
    "user_email": "u.email",
}

TABLES = ("notifications", "transactions", "users")


class DuckDBStorage(MetricStore, NotificationStore):
    """
    DuckDB implementation of the metric and notification stores.

    Attributes:
        db_path: Path to the DuckDB database file
        query_timeout_seconds: Statements running longer are interrupted
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(
        self,
        db_path: str = "./data/paydash.duckdb",
        query_timeout_seconds: float = 30.0,
        threads: Optional[int] = None,
        memory_limit: Optional[str] = None,
    ):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
            query_timeout_seconds: Watchdog timeout per statement
            threads: Optional DuckDB worker thread count
            memory_limit: Optional DuckDB memory limit (e.g. "2GB")
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.query_timeout_seconds = query_timeout_seconds
        self.threads = threads
        self.memory_limit = memory_limit

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    # =========================================================================
    # Connection management
    # =========================================================================

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Raises:
            DataUnavailable: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                conn = duckdb.connect(str(self.db_path))
                if self.threads:
                    conn.execute(f"SET threads TO {int(self.threads)}")
                if self.memory_limit:
                    conn.execute(f"SET memory_limit = '{self.memory_limit}'")
                self._local.connection = conn
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except duckdb.Error as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise DataUnavailable(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _execute(
        self, operation: str, sql: str, params: Optional[list] = None, fetch: bool = True
    ) -> list[tuple]:
        """
        Run one statement under the query watchdog and fetch all rows.

        Args:
            operation: Short name used in log events and error messages
            sql: SQL text with ``?`` placeholders
            params: Bound parameters

        Raises:
            DataUnavailable: On driver error or timeout
        """
        timed_out = threading.Event()

        with self._get_connection() as conn:

            def interrupt() -> None:
                timed_out.set()
                conn.interrupt()

            watchdog = threading.Timer(self.query_timeout_seconds, interrupt)
            watchdog.daemon = True
            watchdog.start()
            try:
                cursor = conn.execute(sql, params or [])
                return cursor.fetchall() if fetch else []
            except duckdb.Error as e:
                if timed_out.is_set():
                    logger.error(
                        "duckdb_query_timeout",
                        operation=operation,
                        timeout_seconds=self.query_timeout_seconds,
                    )
                    raise DataUnavailable(
                        f"{operation} exceeded {self.query_timeout_seconds}s timeout"
                    ) from e
                logger.error("duckdb_query_failed", operation=operation, error=str(e))
                raise DataUnavailable(f"{operation} failed: {e}") from e
            finally:
                watchdog.cancel()

    def _initialize_schema(self) -> None:
        """
        Create tables, sequences and indexes. Idempotent.

        Raises:
            DataUnavailable: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            statements = [
                """
                CREATE TABLE IF NOT EXISTS users (
                    id VARCHAR PRIMARY KEY,
                    full_name VARCHAR NOT NULL,
                    email VARCHAR NOT NULL UNIQUE,
                    status VARCHAR NOT NULL DEFAULT 'ACTIVE',
                    phone_number VARCHAR,
                    created_at TIMESTAMP NOT NULL
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id VARCHAR PRIMARY KEY,
                    user_id VARCHAR NOT NULL,
                    amount DECIMAL(15, 2) NOT NULL CHECK (amount > 0),
                    currency VARCHAR NOT NULL DEFAULT 'INR',
                    type VARCHAR NOT NULL,
                    status VARCHAR NOT NULL,
                    payment_method VARCHAR,
                    payment_provider VARCHAR,
                    failure_reason VARCHAR,
                    created_at TIMESTAMP NOT NULL
                )
                """,
                "CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at)",
                "CREATE INDEX IF NOT EXISTS idx_transactions_created_at ON transactions(created_at)",
                "CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions(status)",
                "CREATE INDEX IF NOT EXISTS idx_transactions_user_id ON transactions(user_id)",
                "CREATE SEQUENCE IF NOT EXISTS notification_id_seq START 1",
                """
                CREATE TABLE IF NOT EXISTS notifications (
                    id BIGINT PRIMARY KEY DEFAULT nextval('notification_id_seq'),
                    type VARCHAR NOT NULL,
                    title VARCHAR NOT NULL,
                    description VARCHAR NOT NULL,
                    severity VARCHAR NOT NULL,
                    is_read BOOLEAN NOT NULL DEFAULT FALSE,
                    metric_value DOUBLE,
                    threshold_value DOUBLE,
                    comparison_period VARCHAR,
                    created_at TIMESTAMP NOT NULL
                )
                """,
            ]
            for statement in statements:
                self._execute("initialize_schema", statement, fetch=False)

            self._initialized = True
            logger.info("duckdb_schema_initialized", tables=list(TABLES))

    def clear_for_testing(self) -> None:
        """
        Delete all rows. For testing only, a no-op unless TESTING is set.
        """
        if not os.environ.get("TESTING"):
            return
        for table in TABLES:
            self._execute("clear_for_testing", f"DELETE FROM {table}", fetch=False)

    # =========================================================================
    # MetricStore
    # =========================================================================

    @staticmethod
    def _filter_clause(filters: Optional[AggregateFilters]) -> tuple[str, list]:
        clause = ""
        params: list = []
        if filters is None:
            return clause, params
        if filters.status:
            clause += " AND status = ?"
            params.append(filters.status.value)
        if filters.transaction_type:
            clause += " AND type = ?"
            params.append(filters.transaction_type.value)
        if filters.payment_method:
            clause += " AND payment_method = ?"
            params.append(filters.payment_method.value)
        return clause, params

    def aggregate(
        self, window: TimeWindow, filters: Optional[AggregateFilters] = None
    ) -> RawAggregates:
        """Count and sum transactions in a window."""
        clause, params = self._filter_clause(filters)
        rows = self._execute(
            "aggregate",
            f"""
            SELECT
                COUNT(*),
                COUNT(*) FILTER (WHERE status = 'PENDING'),
                COUNT(*) FILTER (WHERE status = 'SUCCESS'),
                COUNT(*) FILTER (WHERE status = 'FAILED'),
                COUNT(*) FILTER (WHERE status = 'CANCELLED'),
                COUNT(*) FILTER (WHERE status = 'SUCCESS' AND type = 'PAYMENT'),
                COALESCE(SUM(amount) FILTER (WHERE status = 'SUCCESS' AND type = 'PAYMENT'), 0),
                COALESCE(SUM(amount) FILTER (WHERE status = 'FAILED'), 0)
            FROM transactions
            WHERE created_at >= ? AND created_at <= ?{clause}
            """,
            [window.start, window.end, *params],
        )
        (total, pending, success, failed, cancelled, pay_count, pay_sum, failed_sum) = rows[0]
        new_users = self.count_new_users(window)

        return RawAggregates(
            total_count=total,
            pending_count=pending,
            success_count=success,
            failed_count=failed,
            cancelled_count=cancelled,
            successful_payment_count=pay_count,
            successful_payment_sum=Decimal(pay_sum),
            failed_sum=Decimal(failed_sum),
            new_users=new_users,
        )

    def grouped_aggregate(
        self, window: TimeWindow, dimension: BreakdownDimension
    ) -> list[GroupedRow]:
        """Count and sum transactions per category of a dimension."""
        column = DIMENSION_COLUMNS[dimension]
        rows = self._execute(
            "grouped_aggregate",
            f"""
            SELECT
                {column} AS label,
                COUNT(*),
                COALESCE(SUM(amount), 0),
                COUNT(*) FILTER (WHERE status = 'SUCCESS'),
                COALESCE(SUM(amount) FILTER (WHERE status = 'SUCCESS'), 0)
            FROM transactions
            WHERE created_at >= ? AND created_at <= ?
            GROUP BY label
            """,
            [window.start, window.end],
        )
        return [
            GroupedRow(
                label=str(label),
                count=count,
                amount=Decimal(amount),
                success_count=success_count,
                success_amount=Decimal(success_amount),
            )
            for label, count, amount, success_count, success_amount in rows
        ]

    def top_n(self, window: TimeWindow, metric: TopNMetric, n: int) -> list[TopNRow]:
        """Rank users by successful payment revenue or count."""
        order = "revenue DESC" if metric == TopNMetric.REVENUE else "txn_count DESC, revenue DESC"
        rows = self._execute(
            "top_n",
            f"""
            SELECT u.id, u.full_name, u.email, COUNT(t.id) AS txn_count, SUM(t.amount) AS revenue
            FROM transactions t
            JOIN users u ON u.id = t.user_id
            WHERE t.status = 'SUCCESS' AND t.type = 'PAYMENT'
              AND t.created_at >= ? AND t.created_at <= ?
            GROUP BY u.id, u.full_name, u.email
            ORDER BY {order}, u.id ASC
            LIMIT ?
            """,
            [window.start, window.end, n],
        )
        return [
            TopNRow(
                entity_id=user_id,
                entity_label=full_name,
                entity_detail=email,
                count=txn_count,
                amount=Decimal(revenue),
            )
            for user_id, full_name, email, txn_count, revenue in rows
        ]

    def count_users(
        self, as_of: Optional[datetime] = None, status: Optional[UserStatus] = None
    ) -> int:
        """Users created at or before as_of."""
        sql = "SELECT COUNT(*) FROM users WHERE 1=1"
        params: list = []
        if as_of is not None:
            sql += " AND created_at <= ?"
            params.append(as_of)
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        return self._execute("count_users", sql, params)[0][0]

    def count_new_users(self, window: TimeWindow) -> int:
        """Users created in [start, end)."""
        return self._execute(
            "count_new_users",
            "SELECT COUNT(*) FROM users WHERE created_at >= ? AND created_at < ?",
            [window.start, window.end],
        )[0][0]

    def daily_stats(self, window: TimeWindow) -> list[dict]:
        """Per-day transaction totals, oldest first."""
        rows = self._execute(
            "daily_stats",
            """
            SELECT
                CAST(created_at AS DATE) AS day,
                COUNT(*),
                COALESCE(SUM(amount), 0),
                COUNT(*) FILTER (WHERE status = 'SUCCESS'),
                COALESCE(SUM(amount) FILTER (WHERE status = 'SUCCESS'), 0),
                COALESCE(SUM(amount) FILTER (WHERE status = 'SUCCESS' AND type = 'PAYMENT'), 0),
                COUNT(*) FILTER (WHERE status = 'FAILED')
            FROM transactions
            WHERE created_at >= ? AND created_at <= ?
            GROUP BY day
            ORDER BY day
            """,
            [window.start, window.end],
        )
        return [
            {
                "day": day,
                "total_count": total,
                "total_amount": Decimal(total_amount),
                "success_count": success,
                "success_amount": Decimal(success_amount),
                "successful_payment_amount": Decimal(payment_amount),
                "failed_count": failed,
            }
            for day, total, total_amount, success, success_amount, payment_amount, failed in rows
        ]

    def user_activity(self, window: TimeWindow) -> list[dict]:
        """Per-day new and active users, oldest first."""
        rows = self._execute(
            "user_activity",
            """
            WITH new_users AS (
                SELECT CAST(created_at AS DATE) AS day, COUNT(*) AS new_users
                FROM users
                WHERE created_at >= ? AND created_at <= ?
                GROUP BY day
            ),
            active_users AS (
                SELECT CAST(created_at AS DATE) AS day, COUNT(DISTINCT user_id) AS active_users
                FROM transactions
                WHERE created_at >= ? AND created_at <= ?
                GROUP BY day
            )
            SELECT
                COALESCE(n.day, a.day) AS day,
                COALESCE(n.new_users, 0),
                COALESCE(a.active_users, 0)
            FROM new_users n
            FULL OUTER JOIN active_users a ON n.day = a.day
            ORDER BY day
            """,
            [window.start, window.end, window.start, window.end],
        )
        return [
            {"day": day, "new_users": new_users, "active_users": active_users}
            for day, new_users, active_users in rows
        ]

    def find_transactions(
        self, query: TransactionQuery
    ) -> tuple[list[TransactionRow], int]:
        """Filter, sort and paginate ledger transactions."""
        where = " WHERE 1=1"
        params: list[Any] = []

        if query.email:
            # Plain substring match; % and _ in the input are literal
            where += " AND contains(LOWER(u.email), ?)"
            params.append(query.email.strip().lower())
        if query.status:
            where += " AND t.status = ?"
            params.append(query.status.value)
        if query.payment_method:
            where += " AND t.payment_method = ?"
            params.append(query.payment_method.value)
        if query.transaction_type:
            where += " AND t.type = ?"
            params.append(query.transaction_type.value)
        if query.min_amount is not None:
            where += " AND t.amount >= ?"
            params.append(query.min_amount)
        if query.max_amount is not None:
            where += " AND t.amount <= ?"
            params.append(query.max_amount)
        if query.start_date:
            where += " AND t.created_at >= ?"
            params.append(datetime.combine(query.start_date, time.min))
        if query.end_date:
            where += " AND t.created_at <= ?"
            params.append(datetime.combine(query.end_date, time.max))

        base = " FROM transactions t LEFT JOIN users u ON u.id = t.user_id" + where
        total = self._execute("find_transactions_count", "SELECT COUNT(*)" + base, params)[0][0]

        direction = "ASC" if query.sort_dir.lower() == "asc" else "DESC"
        order = f" ORDER BY {SORT_COLUMNS[query.sort_by]} {direction}, t.id {direction}"
        offset = (query.page - 1) * query.page_size
        rows = self._execute(
            "find_transactions",
            """
            SELECT t.id, t.user_id, u.email, u.full_name, t.amount, t.currency, t.type,
                   t.status, t.payment_method, t.failure_reason, t.created_at
            """
            + base
            + order
            + " LIMIT ? OFFSET ?",
            [*params, query.page_size, offset],
        )

        items = [
            TransactionRow(
                id=row[0],
                user_id=row[1],
                user_email=row[2],
                user_name=row[3],
                amount=Decimal(row[4]),
                currency=row[5],
                transaction_type=TransactionType(row[6]),
                status=TransactionStatus(row[7]),
                payment_method=row[8],
                failure_reason=row[9],
                created_at=row[10],
            )
            for row in rows
        ]
        return items, total

    def write_users(self, users: list[dict]) -> int:
        """Bulk insert users."""
        if not users:
            return 0
        with self._get_connection() as conn:
            try:
                conn.executemany(
                    """
                    INSERT INTO users (id, full_name, email, status, phone_number, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        [
                            u["id"],
                            u["full_name"],
                            u["email"],
                            u.get("status", UserStatus.ACTIVE.value),
                            u.get("phone_number"),
                            u["created_at"],
                        ]
                        for u in users
                    ],
                )
            except duckdb.Error as e:
                logger.error("write_users_failed", error=str(e), count=len(users))
                raise DataUnavailable(f"Failed to write users: {e}") from e

        logger.info("users_written", count=len(users))
        return len(users)

    def write_transactions(self, transactions: list[dict]) -> int:
        """Bulk insert transactions."""
        if not transactions:
            return 0
        with self._get_connection() as conn:
            try:
                conn.executemany(
                    """
                    INSERT INTO transactions (
                        id, user_id, amount, currency, type, status,
                        payment_method, payment_provider, failure_reason, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        [
                            t["id"],
                            t["user_id"],
                            Decimal(str(t["amount"])),
                            t.get("currency", "INR"),
                            t.get("type", TransactionType.PAYMENT.value),
                            t["status"],
                            t.get("payment_method"),
                            t.get("payment_provider"),
                            t.get("failure_reason"),
                            t["created_at"],
                        ]
                        for t in transactions
                    ],
                )
            except duckdb.Error as e:
                logger.error("write_transactions_failed", error=str(e), count=len(transactions))
                raise DataUnavailable(f"Failed to write transactions: {e}") from e

        logger.info("transactions_written", count=len(transactions))
        return len(transactions)

    # =========================================================================
    # NotificationStore
    # =========================================================================

    def exists_since(self, notification_type: NotificationType, since: datetime) -> bool:
        rows = self._execute(
            "exists_since",
            "SELECT COUNT(*) FROM notifications WHERE type = ? AND created_at >= ?",
            [notification_type.value, since],
        )
        return rows[0][0] > 0

    def insert_notification(self, notification: Notification) -> int:
        """Single-statement insert; returns the sequence-assigned id."""
        rows = self._execute(
            "insert_notification",
            """
            INSERT INTO notifications (
                type, title, description, severity, is_read,
                metric_value, threshold_value, comparison_period, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            [
                notification.type.value,
                notification.title,
                notification.description,
                notification.severity.value,
                notification.read,
                notification.metric_value,
                notification.threshold_value,
                notification.comparison_period_label,
                notification.created_at,
            ],
        )
        notification_id = rows[0][0]
        logger.info(
            "notification_written",
            notification_id=notification_id,
            type=notification.type.value,
            severity=notification.severity.value,
        )
        return notification_id

    def mark_read(self, notification_id: int) -> bool:
        rows = self._execute(
            "mark_read",
            "UPDATE notifications SET is_read = TRUE WHERE id = ? RETURNING id",
            [notification_id],
        )
        return len(rows) > 0

    def mark_all_read(self) -> int:
        rows = self._execute(
            "mark_all_read",
            "UPDATE notifications SET is_read = TRUE WHERE is_read = FALSE RETURNING id",
        )
        return len(rows)

    def list_recent(self, limit: int) -> list[Notification]:
        rows = self._execute(
            "list_recent",
            """
            SELECT id, type, title, description, severity, is_read,
                   metric_value, threshold_value, comparison_period, created_at
            FROM notifications
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            [limit],
        )
        return [self._row_to_notification(row) for row in rows]

    def count_unread(self) -> int:
        return self._execute(
            "count_unread", "SELECT COUNT(*) FROM notifications WHERE is_read = FALSE"
        )[0][0]

    def count_all(self) -> int:
        return self._execute("count_all", "SELECT COUNT(*) FROM notifications")[0][0]

    def delete_read_older_than(self, before: datetime) -> int:
        rows = self._execute(
            "delete_read_older_than",
            "DELETE FROM notifications WHERE is_read = TRUE AND created_at < ? RETURNING id",
            [before],
        )
        return len(rows)

    @staticmethod
    def _row_to_notification(row: tuple) -> Notification:
        return Notification(
            id=row[0],
            type=NotificationType(row[1]),
            title=row[2],
            description=row[3],
            severity=NotificationSeverity(row[4]),
            read=row[5],
            metric_value=row[6],
            threshold_value=row[7],
            comparison_period_label=row[8],
            created_at=row[9],
        )
