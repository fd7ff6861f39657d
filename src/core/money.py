"""FCFA arithmetic helpers.

The franc CFA has no decimal subdivision: every amount handled by the
application is an integer. Intermediate results (means, percentages) are
computed with ``Decimal`` and only rounded when they become an amount again.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CURRENCY_LABEL = "FCFA"

_ONE = Decimal("1")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_fcfa(value) -> int:
    """Round *value* to the nearest franc, halves rounded up."""
    return int(_as_decimal(value).quantize(_ONE, rounding=ROUND_HALF_UP))


def variance_percentage(price: int, reference: int) -> Decimal:
    """Return ``(price - reference) / reference * 100``.

    *reference* must be strictly positive; callers check for a missing
    reference price before calling.
    """
    if reference <= 0:
        raise ValueError("Le prix de reference doit etre strictement positif.")
    return (Decimal(price) - Decimal(reference)) / Decimal(reference) * Decimal("100")


def mean_fcfa(values: Iterable[int]) -> int:
    """Rounded arithmetic mean of integer amounts (0 for an empty input)."""
    values = list(values)
    if not values:
        return 0
    return to_fcfa(Decimal(sum(values)) / Decimal(len(values)))


def median_price(values: Iterable[int]) -> int:
    """Upper median: element ``len // 2`` of the sorted values."""
    ordered = sorted(values)
    if not ordered:
        return 0
    return ordered[len(ordered) // 2]


def format_fcfa(amount: int) -> str:
    """Format an amount the way it is printed on receipts: ``12 500 FCFA``."""
    return f"{int(amount):,}".replace(",", " ") + f" {CURRENCY_LABEL}"
