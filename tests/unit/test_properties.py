"""
Property-based tests using Hypothesis.

These verify the numeric and ordering invariants of the aggregation engine
across generated inputs: rate bounds, share sums, delta formulas, router
determinism and KPI idempotence.
"""

from datetime import timedelta
from decimal import Decimal

import hypothesis.strategies as st
from hypothesis import assume, given, settings

from paydash.engine.breakdown import BreakdownAggregator
from paydash.engine.insight_router import INTENT_TABLE, match_intent, normalize_query
from paydash.engine.kpi_calculator import KPICalculator, derive_kpis
from paydash.engine.period_comparator import compute_deltas
from paydash.models.analytics import TimeWindow
from paydash.models.enums import BreakdownDimension, PaymentMethod, TransactionStatus, TransactionType
from paydash.utils.numeric import apportion_percentages, percentage, percentage_change
from tests.conftest import FIXED_NOW, MockStorage, make_raw_aggregates, make_snapshot, make_transaction, make_user

WINDOW = TimeWindow.trailing_days(1, now=FIXED_NOW)

transaction_specs = st.lists(
    st.tuples(
        st.sampled_from(list(TransactionStatus)),
        st.sampled_from(list(TransactionType)),
        st.one_of(st.none(), st.sampled_from(list(PaymentMethod))),
        st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2),
        st.integers(min_value=0, max_value=23 * 60),
    ),
    min_size=0,
    max_size=40,
)


def storage_from_specs(specs) -> MockStorage:
    storage = MockStorage()
    user = make_user(created_at=FIXED_NOW - timedelta(days=10))
    storage.write_users([user])
    storage.write_transactions(
        [
            make_transaction(
                user["id"],
                amount=str(amount),
                status=status,
                transaction_type=txn_type,
                payment_method=method,
                created_at=FIXED_NOW - timedelta(minutes=minutes),
            )
            for status, txn_type, method, amount, minutes in specs
        ]
    )
    return storage


# =============================================================================
# Rates and shares
# =============================================================================


@given(
    whole=st.integers(min_value=0, max_value=10**9),
    data=st.data(),
)
@settings(max_examples=200)
def test_prop_percentage_bounded(whole: int, data):
    """Property: for 0 <= part <= whole, percentage(part, whole) is in [0, 100]."""
    part = data.draw(st.integers(min_value=0, max_value=whole))
    assert 0.0 <= percentage(part, whole) <= 100.0


@given(
    success=st.integers(min_value=0, max_value=10**6),
    others=st.integers(min_value=0, max_value=10**6),
)
@settings(max_examples=100)
def test_prop_success_rate_bounded(success: int, others: int):
    """Property: derived success rate is always within [0, 100]."""
    raw = make_raw_aggregates(total_count=success + others, success_count=success)
    snapshot = derive_kpis(raw, 0, WINDOW)
    assert 0.0 <= snapshot.success_rate <= 100.0


@given(parts=st.lists(st.integers(min_value=0, max_value=10**6), min_size=1, max_size=30))
@settings(max_examples=200)
def test_prop_apportioned_shares_sum_to_hundred(parts: list[int]):
    """Property: non-empty totals apportion to 100 within 0.1."""
    total = sum(parts)
    assume(total > 0)
    shares = apportion_percentages(parts, total)
    assert abs(sum(shares) - 100.0) <= 0.1 + 1e-9
    assert all(share >= 0.0 for share in shares)


@given(specs=transaction_specs)
@settings(max_examples=50, deadline=None)
def test_prop_breakdown_shares_sum_to_hundred(specs):
    """Property: every breakdown of a non-empty window sums to 100 within 0.1."""
    storage = storage_from_specs(specs)
    aggregator = BreakdownAggregator(store=storage)

    for dimension in BreakdownDimension:
        entries = aggregator.breakdown_by(dimension, WINDOW)
        if not specs:
            assert entries == []
            continue
        assert abs(sum(e.percentage_of_total for e in entries) - 100.0) <= 0.1 + 1e-9
        assert sum(e.count for e in entries) == len(specs)


# =============================================================================
# Deltas
# =============================================================================


@given(
    current=st.decimals(min_value=0, max_value=10**9, places=2),
    previous=st.decimals(min_value=Decimal("0.01"), max_value=10**9, places=2),
)
@settings(max_examples=200)
def test_prop_percentage_change_formula(current: Decimal, previous: Decimal):
    """Property: delta == (current - previous) / previous * 100, rounded to 2 places."""
    expected = (current - previous) / previous * 100
    result = percentage_change(current, previous)
    assert abs(Decimal(str(result)) - expected) <= Decimal("0.005")


@given(current=st.decimals(min_value=0, max_value=10**6, places=2))
def test_prop_delta_undefined_for_zero_previous(current: Decimal):
    """Property: a zero previous value never produces a numeric delta."""
    deltas = compute_deltas(
        make_snapshot(gtv=current),
        make_snapshot(gtv=Decimal("0.00")),
    )
    assert deltas["gtv"] is None


# =============================================================================
# Insight router
# =============================================================================


@given(text=st.text(max_size=60))
@settings(max_examples=200)
def test_prop_router_deterministic_first_match(text: str):
    """Property: the same query always maps to the earliest intent with a keyword hit."""
    first = match_intent(text)
    assert match_intent(text) == first

    normalized = normalize_query(text)
    hits = [
        d for d in INTENT_TABLE if normalized and any(k in normalized for k in d.keywords)
    ]
    if hits:
        assert first == hits[0]
    else:
        assert first is None


@given(
    keyword_index=st.integers(min_value=0, max_value=len(INTENT_TABLE) - 1),
    padding=st.text(alphabet=" \t", max_size=5),
)
def test_prop_router_case_and_whitespace_insensitive(keyword_index: int, padding: str):
    """Property: case and surrounding whitespace never change the matched intent."""
    keyword = INTENT_TABLE[keyword_index].keywords[0]
    assert match_intent(padding + keyword.upper() + padding) == match_intent(keyword)


# =============================================================================
# KPI idempotence
# =============================================================================


@given(specs=transaction_specs)
@settings(max_examples=50, deadline=None)
def test_prop_kpi_compute_idempotent(specs):
    """Property: computing KPIs twice over unchanged data yields equal snapshots."""
    calculator = KPICalculator(store=storage_from_specs(specs))
    first = calculator.compute(WINDOW)
    second = calculator.compute(WINDOW)

    assert first == second
    assert first.total_transactions == len(specs)
    assert first.gtv >= 0
