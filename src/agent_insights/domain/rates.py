"""Zero-guarded percentage and rounding helpers shared by every metric."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_away(value: float, digits: int = 1) -> float:
    """Round with halves moving away from zero (66.666 -> 66.7, 2.25 -> 2.3)."""

    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def ratio(part: float, total: float) -> float:
    """Return `part / total`, or 0.0 when `total` is zero."""

    if not total:
        return 0.0
    return part / total


def percentage(part: float, total: float) -> float:
    """Return the unrounded percentage of `part` in `total`, 0.0 for empty totals."""

    return ratio(part, total) * 100


def rounded_percentage(part: float, total: float) -> float:
    """Return the percentage rounded to one decimal."""

    return round_half_away(percentage(part, total))
