"""Per-request pricing context.

Services receive the zone, the compared price field and the display bands as
an explicit argument instead of reading them from shared state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.conf import settings

from .engine import VarianceBands
from .models import PRICE_FIELDS


@dataclass(frozen=True)
class PricingContext:
    zone: Optional[object] = None
    price_field: str = "crate"
    bands: VarianceBands = field(default_factory=VarianceBands)

    def __post_init__(self):
        if self.price_field not in PRICE_FIELDS:
            raise ValueError(f"Champ de prix inconnu: {self.price_field}")

    @property
    def zone_id(self):
        return getattr(self.zone, "pk", None)

    @classmethod
    def build(cls, zone=None, price_field="crate") -> "PricingContext":
        """Context using the variance thresholds configured in settings."""
        bands = VarianceBands(
            low_threshold=Decimal(str(getattr(settings, "PRICE_VARIANCE_LOW_THRESHOLD", -5))),
            high_threshold=Decimal(str(getattr(settings, "PRICE_VARIANCE_HIGH_THRESHOLD", 5))),
        )
        return cls(zone=zone, price_field=price_field or "crate", bands=bands)
