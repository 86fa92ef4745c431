"""
Decimal helpers shared by the aggregation engine.

Money stays in Decimal end to end; percentages are computed in Decimal and
only converted to float after half-up rounding to two places.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, Union

Number = Union[Decimal, int, float]

CENT = Decimal("0.01")
HUNDRED = Decimal(100)
PERCENT_SUM_TOLERANCE = Decimal("0.1")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce store output (None, int, float, Decimal) to Decimal."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Optional[Number]) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Number, places: int = 2) -> float:
    """Round half-up (not banker's rounding) and return a float."""
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number) -> float:
    """part / whole * 100 rounded half-up to 2 places; 0.0 when whole is 0."""
    whole_d = to_decimal(whole)
    if whole_d == 0:
        return 0.0
    return round_half_up(to_decimal(part) * HUNDRED / whole_d)


def percentage_change(current: Number, previous: Number) -> Optional[float]:
    """
    Relative change from previous to current in percent.

    Returns None when previous is zero: the change is undefined, and
    reporting 0 or 100 would hide that.
    """
    prev = to_decimal(previous)
    if prev == 0:
        return None
    return round_half_up((to_decimal(current) - prev) / prev * HUNDRED)


def apportion_percentages(parts: Sequence[Number], total: Number) -> list[float]:
    """
    Shares of ``total`` in percent that always sum to exactly 100.

    Plain half-up rounding of each share is used when it already sums to
    100 within tolerance. Otherwise hundredths of a percent are allocated by
    the largest-remainder method.
    """
    whole = to_decimal(total)
    if whole == 0 or not parts:
        return [0.0 for _ in parts]

    rounded = [percentage(p, whole) for p in parts]
    drift = abs(sum(Decimal(str(r)) for r in rounded) - HUNDRED)
    if drift <= PERCENT_SUM_TOLERANCE:
        return rounded

    # Work in hundredths of a percent: 100% == 10000 units
    exact = [to_decimal(p) * Decimal(10000) / whole for p in parts]
    floors = [e.to_integral_value(rounding=ROUND_DOWN) for e in exact]
    remaining = int(Decimal(10000) - sum(floors))
    by_remainder = sorted(
        range(len(parts)), key=lambda i: (exact[i] - floors[i], -i), reverse=True
    )
    for i in by_remainder[:remaining]:
        floors[i] += 1
    return [float(units / HUNDRED) for units in floors]
