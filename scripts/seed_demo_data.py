#!/usr/bin/env python3
"""
Seed the DuckDB ledger with realistic demo users and transactions.

Generates users spread over the seeding period and transactions with
weighted type, status and payment method mixes, biased toward recent
dates. A small group of high-activity users receives most of the volume
so the top-users and payment method reports have something to show.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --users 500 --transactions 20000 --days 365 --seed 7
    python scripts/seed_demo_data.py --clear
"""

import argparse
import random
import sys
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Optional
from uuid import uuid4

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from paydash.models.enums import PaymentMethod, TransactionStatus, TransactionType, UserStatus
from paydash.storage import get_storage
from paydash.utils.logging import configure_logging

logger = structlog.get_logger()

FIRST_NAMES = [
    "Aarav", "Vivaan", "Aditya", "Vihaan", "Arjun", "Sai", "Reyansh", "Krishna",
    "Ishaan", "Rohan", "Ananya", "Diya", "Aadhya", "Saanvi", "Pari", "Myra",
    "Kavya", "Meera", "Riya", "Nisha", "Priya", "Neha", "Rahul", "Amit",
]
LAST_NAMES = [
    "Sharma", "Verma", "Gupta", "Iyer", "Reddy", "Nair", "Patel", "Shah",
    "Mehta", "Kapoor", "Singh", "Das", "Rao", "Joshi", "Kulkarni", "Bose",
]
EMAIL_DOMAINS = ["gmail.com", "yahoo.co.in", "outlook.com", "rediffmail.com"]

TYPE_WEIGHTS = {
    TransactionType.PAYMENT: 0.80,
    TransactionType.PAYOUT: 0.12,
    TransactionType.REFUND: 0.08,
}
STATUS_WEIGHTS = {
    TransactionStatus.SUCCESS: 0.75,
    TransactionStatus.FAILED: 0.15,
    TransactionStatus.PENDING: 0.10,
}
METHOD_WEIGHTS = {
    PaymentMethod.UPI: 0.50,
    PaymentMethod.CREDIT_CARD: 0.30,
    PaymentMethod.WALLET: 0.20,
}
FAILURE_REASONS = {
    "INSUFFICIENT_FUNDS": 0.30,
    "BANK_SERVER_DOWN": 0.20,
    "NPCI_TIMEOUT": 0.15,
    "USER_ABORTED": 0.15,
    "INVALID_UPI_ID": 0.10,
    "UNKNOWN_ERROR": 0.10,
}
PROVIDERS = {
    PaymentMethod.UPI: ["PhonePe", "GooglePay", "Paytm", "BHIM", "AmazonPay"],
    PaymentMethod.WALLET: ["Paytm", "PhonePe", "AmazonPay", "Mobikwik", "Freecharge"],
    PaymentMethod.CREDIT_CARD: ["Visa", "Mastercard", "RuPay", "Amex"],
}

# Share of users per activity tier and share of transactions they receive
ACTIVITY_TIERS = [("high", 0.10, 0.40), ("normal", 0.70, 0.45), ("low", 0.15, 0.10), ("new", 0.05, 0.05)]


class DemoDataGenerator:
    """Deterministic generator for demo ledger rows."""

    def __init__(self, seed: int = 42, days: int = 365, now: Optional[datetime] = None):
        self.rng = random.Random(seed)
        self.days = days
        self.end = now or datetime.utcnow()
        self.start = self.end - timedelta(days=days)

    def _weighted(self, weights: dict):
        return self.rng.choices(list(weights), weights=list(weights.values()), k=1)[0]

    def _recent_biased(self) -> datetime:
        bias = self.rng.random() ** 0.7
        offset_days = int(self.days * (1 - bias))
        return self.start + timedelta(
            days=offset_days,
            hours=self.rng.randint(0, 23),
            minutes=self.rng.randint(0, 59),
            seconds=self.rng.randint(0, 59),
        )

    def _amount(self, txn_type: TransactionType) -> Decimal:
        if txn_type == TransactionType.PAYMENT:
            roll = self.rng.random()
            if roll < 0.70:
                value = self.rng.uniform(100, 5000)
            elif roll < 0.97:
                value = self.rng.uniform(5000, 50000)
            else:
                value = self.rng.uniform(50000, 500000)
        elif txn_type == TransactionType.PAYOUT:
            value = self.rng.uniform(500, 20000)
        else:
            value = self.rng.uniform(50, 5000)
        return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def generate_users(self, count: int) -> list[dict]:
        users = []
        seen_emails = set()
        for i in range(count):
            first = self.rng.choice(FIRST_NAMES)
            last = self.rng.choice(LAST_NAMES)
            email = f"{first}.{last}{i}@{self.rng.choice(EMAIL_DOMAINS)}".lower()
            if email in seen_emails:
                continue
            seen_emails.add(email)
            users.append(
                {
                    "id": str(uuid4()),
                    "full_name": f"{first} {last}",
                    "email": email,
                    "status": (
                        UserStatus.ACTIVE.value
                        if self.rng.random() < 0.90
                        else UserStatus.INACTIVE.value
                    ),
                    "phone_number": f"+91{self.rng.randint(6000000000, 9999999999)}",
                    "created_at": self.start + timedelta(seconds=self.rng.uniform(0, self.days * 86400)),
                }
            )
        return sorted(users, key=lambda u: u["created_at"])

    def _tiers(self, users: list[dict]) -> list[tuple[list[dict], float]]:
        tiers = []
        offset = 0
        for position, (_, user_share, txn_share) in enumerate(ACTIVITY_TIERS):
            size = len(users) - offset if position == len(ACTIVITY_TIERS) - 1 else int(len(users) * user_share)
            members = users[offset:offset + size]
            offset += size
            if members:
                tiers.append((members, txn_share))
        return tiers

    def generate_transactions(self, users: list[dict], count: int) -> list[dict]:
        tiers = self._tiers(users)
        transactions = []
        for _ in range(count):
            members = self.rng.choices([t[0] for t in tiers], weights=[t[1] for t in tiers], k=1)[0]
            user = self.rng.choice(members)

            txn_type = self._weighted(TYPE_WEIGHTS)
            status = self._weighted(STATUS_WEIGHTS)
            method = self._weighted(METHOD_WEIGHTS)
            created_at = max(self._recent_biased(), user["created_at"])

            transactions.append(
                {
                    "id": str(uuid4()),
                    "user_id": user["id"],
                    "amount": self._amount(txn_type),
                    "currency": "INR",
                    "type": txn_type.value,
                    "status": status.value,
                    "payment_method": method.value,
                    "payment_provider": self.rng.choice(PROVIDERS[method]),
                    "failure_reason": (
                        self._weighted(FAILURE_REASONS)
                        if status == TransactionStatus.FAILED
                        else None
                    ),
                    "created_at": min(created_at, self.end),
                }
            )
        return transactions


def main():
    """Main entry point for demo data seeding."""
    parser = argparse.ArgumentParser(description="Seed the paydash ledger with demo data")
    parser.add_argument("--users", type=int, default=200, help="Number of users (default: 200)")
    parser.add_argument(
        "--transactions",
        type=int,
        default=5000,
        help="Number of transactions (default: 5000)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=365,
        help="Spread data over this many trailing days (default: 365)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        default=False,
        help="Delete existing rows first (only honoured when TESTING is set)",
    )
    args = parser.parse_args()

    configure_logging()

    if args.users < 1 or args.transactions < 0 or args.days < 1:
        parser.error("--users and --days must be positive and --transactions non-negative")

    storage = get_storage()
    if args.clear:
        storage.clear_for_testing()

    generator = DemoDataGenerator(seed=args.seed, days=args.days)
    logger.info(
        "demo_seed_started",
        users=args.users,
        transactions=args.transactions,
        days=args.days,
        seed=args.seed,
    )

    users = generator.generate_users(args.users)
    transactions = generator.generate_transactions(users, args.transactions)
    storage.write_users(users)
    storage.write_transactions(transactions)

    logger.info(
        "demo_seed_complete",
        users_written=len(users),
        transactions_written=len(transactions),
        db_path=str(storage.db_path),
    )


if __name__ == "__main__":
    main()
