"""Price variance and market trend computations.

Everything in this module is a pure function over already-fetched numbers:
no ORM access, no cache, no logging. ``pricing.services`` fetches the data,
calls these functions and persists or serialises the results.

Expected domain conditions (a product without reference price) are returned
as values on the result object. Only malformed input raises.
"""
from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone as dt_timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from core.money import mean_fcfa, median_price, variance_percentage

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


class PricingError(str, enum.Enum):
    MISSING_REFERENCE_PRICE = "MissingReferencePrice"


class VarianceBand(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class Bucketing(str, enum.Enum):
    DAILY = "daily"


def _require_price(value, label="prix") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Le {label} doit etre un entier (FCFA), recu {value!r}.")
    if value <= 0:
        raise ValueError(f"Le {label} doit etre strictement positif, recu {value}.")
    return value


# ---------------------------------------------------------------------------
# Variance
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VarianceBands:
    """Display thresholds, in percent of the reference price."""

    low_threshold: Decimal = Decimal("-5")
    high_threshold: Decimal = Decimal("5")

    def __post_init__(self):
        if self.low_threshold > self.high_threshold:
            raise ValueError("Le seuil bas doit etre inferieur au seuil haut.")


def classify_variance(percentage, bands: Optional[VarianceBands] = None) -> VarianceBand:
    """Place a variance percentage in the low / normal / high band."""
    bands = bands or VarianceBands()
    percentage = Decimal(str(percentage))
    if percentage < bands.low_threshold:
        return VarianceBand.LOW
    if percentage > bands.high_threshold:
        return VarianceBand.HIGH
    return VarianceBand.NORMAL


@dataclass(frozen=True)
class SupplierQuote:
    supplier_id: str
    supplier_name: str
    price: int


@dataclass(frozen=True)
class SupplierVariance:
    supplier_id: str
    supplier_name: str
    price: int
    variance: int
    variance_percentage: Decimal

    def as_dict(self, bands: Optional[VarianceBands] = None) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "price": self.price,
            "variance": self.variance,
            "variance_percentage": float(self.variance_percentage.quantize(_CENT)),
            "band": classify_variance(self.variance_percentage, bands).value,
        }


@dataclass(frozen=True)
class VarianceReport:
    reference_price: int
    supplier_prices: tuple[SupplierVariance, ...]
    avg_variance: Decimal
    avg_variance_percentage: Decimal
    min_price: int
    max_price: int

    def as_dict(self, bands: Optional[VarianceBands] = None) -> dict:
        return {
            "reference_price": self.reference_price,
            "supplier_prices": [line.as_dict(bands) for line in self.supplier_prices],
            "avg_variance": float(self.avg_variance.quantize(_CENT)),
            "avg_variance_percentage": float(self.avg_variance_percentage.quantize(_CENT)),
            "min_price": self.min_price,
            "max_price": self.max_price,
        }


@dataclass(frozen=True)
class VarianceResult:
    """Either a report or the reason no report could be computed."""

    report: Optional[VarianceReport] = None
    error: Optional[PricingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def compute_variance(
    reference_price: Optional[int],
    supplier_quotes: Sequence[SupplierQuote],
) -> VarianceResult:
    """Compare every supplier quote with the reference price.

    A missing or zero reference price yields
    ``PricingError.MISSING_REFERENCE_PRICE`` and no aggregation at all. With
    no quotes the report is empty, with a zero average and min/max pinned to
    the reference price.
    """
    if reference_price is None or reference_price <= 0:
        return VarianceResult(error=PricingError.MISSING_REFERENCE_PRICE)
    reference_price = _require_price(reference_price, "prix de reference")

    if not supplier_quotes:
        return VarianceResult(
            report=VarianceReport(
                reference_price=reference_price,
                supplier_prices=(),
                avg_variance=_ZERO,
                avg_variance_percentage=_ZERO,
                min_price=reference_price,
                max_price=reference_price,
            )
        )

    lines = []
    for quote in supplier_quotes:
        price = _require_price(quote.price, "prix fournisseur")
        lines.append(
            SupplierVariance(
                supplier_id=str(quote.supplier_id),
                supplier_name=quote.supplier_name,
                price=price,
                variance=price - reference_price,
                variance_percentage=variance_percentage(price, reference_price),
            )
        )

    count = Decimal(len(lines))
    prices = [line.price for line in lines]
    return VarianceResult(
        report=VarianceReport(
            reference_price=reference_price,
            supplier_prices=tuple(lines),
            avg_variance=Decimal(sum(line.variance for line in lines)) / count,
            avg_variance_percentage=sum((line.variance_percentage for line in lines), _ZERO) / count,
            min_price=min(prices),
            max_price=max(prices),
        )
    )


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PriceSample:
    timestamp: datetime
    price: int


@dataclass(frozen=True)
class TrendBucket:
    date: date
    avg_price: int
    min_price: int
    max_price: int
    sample_count: int

    def as_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "avg_price": self.avg_price,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "sample_count": self.sample_count,
        }


def aggregate_trend(
    samples: Iterable[PriceSample],
    bucketing: Bucketing = Bucketing.DAILY,
    tz: tzinfo = dt_timezone.utc,
) -> list[TrendBucket]:
    """Group price samples by calendar day in *tz* and summarise each day.

    Timestamps must be timezone-aware; the bucket of a sample is the date of
    its timestamp once converted to *tz* (UTC unless told otherwise), so the
    result does not depend on the server's local time.
    """
    if bucketing is not Bucketing.DAILY:
        raise ValueError(f"Regroupement non pris en charge: {bucketing!r}")

    buckets: dict[date, list[int]] = defaultdict(list)
    for sample in samples:
        if sample.timestamp.tzinfo is None or sample.timestamp.utcoffset() is None:
            raise ValueError("Les horodatages des echantillons doivent avoir un fuseau horaire.")
        buckets[sample.timestamp.astimezone(tz).date()].append(
            _require_price(sample.price, "prix applique")
        )

    return [
        TrendBucket(
            date=day,
            avg_price=mean_fcfa(prices),
            min_price=min(prices),
            max_price=max(prices),
            sample_count=len(prices),
        )
        for day, prices in sorted(buckets.items())
    ]


# ---------------------------------------------------------------------------
# Analytics snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SnapshotSample:
    applied_price: int
    reference_price: Optional[int] = None
    supplier_id: Optional[str] = None
    quantity: int = 1


@dataclass(frozen=True)
class AnalyticsSummary:
    reference_price_avg: Optional[int]
    supplier_price_min: int
    supplier_price_max: int
    supplier_price_avg: int
    supplier_price_median: int
    avg_variance_percentage: Decimal
    max_variance_percentage: Decimal
    total_orders: int
    total_quantity: int
    total_suppliers: int


def summarize_snapshots(samples: Sequence[SnapshotSample]) -> Optional[AnalyticsSummary]:
    """Statistics of the applied prices of one product over a period.

    Variance percentages only use samples that carried a reference price;
    the max variance is the largest absolute deviation. Returns ``None`` when
    there is nothing to summarise.
    """
    if not samples:
        return None

    applied = [_require_price(s.applied_price, "prix applique") for s in samples]
    references = [s.reference_price for s in samples if s.reference_price]
    variances = [
        variance_percentage(s.applied_price, s.reference_price)
        for s in samples
        if s.reference_price
    ]
    suppliers = {str(s.supplier_id) for s in samples if s.supplier_id}

    return AnalyticsSummary(
        reference_price_avg=mean_fcfa(references) if references else None,
        supplier_price_min=min(applied),
        supplier_price_max=max(applied),
        supplier_price_avg=mean_fcfa(applied),
        supplier_price_median=median_price(applied),
        avg_variance_percentage=(
            sum(variances, _ZERO) / Decimal(len(variances)) if variances else _ZERO
        ),
        max_variance_percentage=max((abs(v) for v in variances), default=_ZERO),
        total_orders=len(samples),
        total_quantity=sum(max(s.quantity, 0) for s in samples),
        total_suppliers=len(suppliers),
    )


# ---------------------------------------------------------------------------
# Market report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketReport:
    total_products: int
    with_reference_prices: int
    with_supplier_prices: int
    avg_variance: Decimal
    products_above_reference: int
    products_below_reference: int
    generated_for: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "total_products": self.total_products,
            "with_reference_prices": self.with_reference_prices,
            "with_supplier_prices": self.with_supplier_prices,
            "avg_variance": float(self.avg_variance.quantize(_CENT)),
            "products_above_reference": self.products_above_reference,
            "products_below_reference": self.products_below_reference,
            **self.generated_for,
        }


def build_market_report(
    total_products: int,
    with_reference_prices: int,
    with_supplier_prices: int,
    variance_percentages: Sequence,
    generated_for: Optional[dict] = None,
) -> MarketReport:
    """Market overview from the current analytics' average variances."""
    values = [Decimal(str(v)) for v in variance_percentages]
    return MarketReport(
        total_products=total_products,
        with_reference_prices=with_reference_prices,
        with_supplier_prices=with_supplier_prices,
        avg_variance=(sum(values, _ZERO) / Decimal(len(values))) if values else _ZERO,
        products_above_reference=sum(1 for v in values if v > 0),
        products_below_reference=sum(1 for v in values if v < 0),
        generated_for=dict(generated_for or {}),
    )
