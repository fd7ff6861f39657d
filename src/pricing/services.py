"""Business logic / service functions for the pricing app.

These functions read reference prices, supplier grids and order snapshots
from the database, hand plain numbers to ``pricing.engine`` and persist what
comes back. Grid writes lock the grid rows with ``select_for_update()``;
analytics refreshes lock the product row so that only one current snapshot
exists per (product, zone).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from catalog.models import Product

from .context import PricingContext
from .engine import (
    MarketReport,
    PriceSample,
    SnapshotSample,
    SupplierQuote,
    TrendBucket,
    VarianceResult,
    aggregate_trend,
    build_market_report,
    compute_variance,
    summarize_snapshots,
)
from .models import (
    PRICE_FIELDS,
    OrderPricingSnapshot,
    PriceAnalytics,
    ReferencePrice,
    SupplierPriceGrid,
    SupplierPriceGridHistory,
    Zone,
)

logger = logging.getLogger("ravito")

VARIANCE_CACHE_VERSION_KEY = "pricing:variance:version"
_CENT = Decimal("0.01")


class ReferencePriceNotFound(LookupError):
    """No reference price applies to the requested product and zone."""


@dataclass(frozen=True)
class ReferencePriceTriple:
    unit: int
    crate: int
    consign: int
    source: str = "catalog"

    def price_for(self, price_field: str) -> int:
        if price_field not in PRICE_FIELDS:
            raise ValueError(f"Champ de prix inconnu: {price_field}")
        return getattr(self, price_field)


# ---------------------------------------------------------------------------
# Collaborator reads
# ---------------------------------------------------------------------------

def _effective_overrides(product, at):
    return (
        ReferencePrice.objects
        .filter(product=product, is_active=True, effective_from__lte=at)
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gte=at))
        .order_by("-effective_from", "-created_at")
    )


def fetch_reference_price(product, zone=None, at=None) -> ReferencePriceTriple:
    """Return the reference prices that apply to *product* in *zone*.

    Resolution order: active zone override valid at *at*, then active
    override without zone, then the product's catalog prices. Raises
    ``ReferencePriceNotFound`` when none of them carries a price.
    """
    at = at or timezone.now()
    overrides = _effective_overrides(product, at)

    override = None
    if zone is not None:
        override = overrides.filter(zone=zone).first()
    if override is None:
        override = overrides.filter(zone__isnull=True).first()

    if override is not None:
        return ReferencePriceTriple(
            unit=override.reference_unit_price,
            crate=override.reference_crate_price,
            consign=override.reference_consign_price,
            source="zone" if override.zone_id else "global",
        )

    if product.reference_crate_price or product.reference_unit_price:
        return ReferencePriceTriple(
            unit=product.reference_unit_price,
            crate=product.reference_crate_price,
            consign=product.reference_consign_price,
        )

    raise ReferencePriceNotFound(f"Aucun prix de reference pour {product}.")


def fetch_supplier_quotes(product, zone=None, price_field="crate") -> list[SupplierQuote]:
    """Active supplier quotes for *product*, restricted to *zone* when given.

    Grids without zone are valid everywhere. Quotes whose selected price is
    zero are left out.
    """
    grids = (
        SupplierPriceGrid.objects
        .filter(product=product, is_active=True)
        .select_related("supplier")
        .order_by("created_at")
    )
    if zone is not None:
        grids = grids.filter(Q(zone=zone) | Q(zone__isnull=True))

    quotes = []
    for grid in grids:
        price = grid.price_for(price_field)
        if price <= 0:
            continue
        quotes.append(
            SupplierQuote(
                supplier_id=str(grid.supplier_id),
                supplier_name=grid.supplier.display_name,
                price=price,
            )
        )
    return quotes


def fetch_transaction_samples(product, date_from, date_to, zone=None) -> list[PriceSample]:
    """Applied crate prices of *product* ordered between the two datetimes."""
    snapshots = OrderPricingSnapshot.objects.filter(
        product=product,
        ordered_at__gte=date_from,
        ordered_at__lte=date_to,
    )
    if zone is not None:
        snapshots = snapshots.filter(zone=zone)
    return [
        PriceSample(timestamp=ordered_at, price=price)
        for ordered_at, price in snapshots.order_by("ordered_at").values_list(
            "ordered_at", "applied_crate_price"
        )
    ]


# ---------------------------------------------------------------------------
# Variance (cached)
# ---------------------------------------------------------------------------

def _cache_version() -> int:
    return cache.get_or_set(VARIANCE_CACHE_VERSION_KEY, 1, timeout=None)


def bump_price_cache_version() -> int:
    """Invalidate every cached variance report."""
    try:
        return cache.incr(VARIANCE_CACHE_VERSION_KEY)
    except ValueError:
        # Key evicted or never set.
        cache.set(VARIANCE_CACHE_VERSION_KEY, 2, timeout=None)
        return 2


def _variance_cache_key(product, context: PricingContext) -> str:
    return "pricing:variance:v{}:{}:{}:{}".format(
        _cache_version(),
        product.pk,
        context.zone_id or "all",
        context.price_field,
    )


def calculate_price_variance(product, context: Optional[PricingContext] = None) -> VarianceResult:
    """Variance of every active supplier quote against the reference price.

    A product without reference price gives a result whose ``error`` is
    ``MissingReferencePrice``; nothing is raised.
    """
    context = context or PricingContext.build()
    key = _variance_cache_key(product, context)
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        reference = fetch_reference_price(product, context.zone).price_for(context.price_field)
    except ReferencePriceNotFound:
        reference = None

    result = compute_variance(
        reference,
        fetch_supplier_quotes(product, context.zone, context.price_field),
    )
    cache.set(key, result, getattr(settings, "PRICE_VARIANCE_CACHE_TTL", 300))
    return result


# ---------------------------------------------------------------------------
# Trends and report
# ---------------------------------------------------------------------------

def get_price_trends(product, date_from, date_to, zone=None, tz=None) -> list[TrendBucket]:
    samples = fetch_transaction_samples(product, date_from, date_to, zone=zone)
    if tz is None:
        return aggregate_trend(samples)
    return aggregate_trend(samples, tz=tz)


def generate_price_report(zone=None) -> MarketReport:
    """Market overview built from the current analytics snapshots.

    With a *zone*, prices are counted the way variance resolves them in that
    zone: zone rows plus rows without zone. Catalog prices apply everywhere.
    """
    products = Product.objects.filter(is_active=True)
    reference_q = Q(reference_prices__is_active=True)
    supplier_q = Q(supplier_grids__is_active=True)
    if zone is not None:
        reference_q &= Q(reference_prices__zone=zone) | Q(reference_prices__zone__isnull=True)
        supplier_q &= Q(supplier_grids__zone=zone) | Q(supplier_grids__zone__isnull=True)

    with_reference = (
        products
        .filter(Q(reference_crate_price__gt=0) | reference_q)
        .distinct()
        .count()
    )
    with_supplier = products.filter(supplier_q).distinct().count()
    variances = PriceAnalytics.objects.filter(
        is_current=True,
        zone=zone,
        product__is_active=True,
    ).values_list("avg_variance_percentage", flat=True)

    return build_market_report(
        total_products=products.count(),
        with_reference_prices=with_reference,
        with_supplier_prices=with_supplier,
        variance_percentages=list(variances),
        generated_for={
            "zone": str(zone.pk) if zone is not None else None,
            "generated_at": timezone.now().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Analytics snapshots
# ---------------------------------------------------------------------------

@transaction.atomic
def upsert_price_analytics(product, zone=None, period_days=None, now=None) -> Optional[PriceAnalytics]:
    """Recompute the current analytics snapshot of *product* in *zone*.

    The previous current row is flipped and the new one inserted inside the
    same transaction, with the product row locked. Without a zone the
    snapshot covers every zone. Returns ``None`` when the period has no
    order.
    """
    period_days = period_days or getattr(settings, "PRICE_ANALYTICS_PERIOD_DAYS", 30)
    period_end = now or timezone.now()
    period_start = period_end - timedelta(days=period_days)

    Product.objects.select_for_update().get(pk=product.pk)

    snapshots = OrderPricingSnapshot.objects.filter(
        product=product,
        ordered_at__gte=period_start,
        ordered_at__lte=period_end,
    )
    if zone is not None:
        snapshots = snapshots.filter(zone=zone)

    summary = summarize_snapshots([
        SnapshotSample(
            applied_price=row["applied_crate_price"],
            reference_price=row["reference_crate_price"],
            supplier_id=row["supplier_id"],
            quantity=row["quantity"],
        )
        for row in snapshots.values(
            "applied_crate_price", "reference_crate_price", "supplier_id", "quantity"
        )
    ])
    if summary is None:
        logger.info("Aucune commande pour %s sur %s jours, analyse ignoree.", product, period_days)
        return None

    PriceAnalytics.objects.filter(product=product, zone=zone, is_current=True).update(
        is_current=False,
    )
    analytics = PriceAnalytics.objects.create(
        product=product,
        zone=zone,
        period_start=period_start,
        period_end=period_end,
        reference_price_avg=summary.reference_price_avg,
        supplier_price_min=summary.supplier_price_min,
        supplier_price_max=summary.supplier_price_max,
        supplier_price_avg=summary.supplier_price_avg,
        supplier_price_median=summary.supplier_price_median,
        avg_variance_percentage=summary.avg_variance_percentage.quantize(_CENT),
        max_variance_percentage=summary.max_variance_percentage.quantize(_CENT),
        total_orders=summary.total_orders,
        total_quantity=summary.total_quantity,
        total_suppliers=summary.total_suppliers,
        calculated_at=timezone.now(),
        is_current=True,
    )
    logger.info(
        "Analyse de prix %s mise a jour (zone=%s, commandes=%s).",
        product,
        zone or "toutes",
        summary.total_orders,
    )
    return analytics


@dataclass
class RefreshResult:
    refreshed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def refresh_price_analytics(product_id=None, zone_id=None, period_days=None) -> RefreshResult:
    """Recompute current analytics for active products.

    Every product gets a zone-less snapshot plus one per zone that has
    orders, unless *zone_id* restricts the run to one zone.
    """
    result = RefreshResult()
    products = Product.objects.filter(is_active=True)
    if product_id:
        products = products.filter(pk=product_id)
    forced_zone = Zone.objects.get(pk=zone_id) if zone_id else None

    for product in products:
        if forced_zone is not None:
            zones = [forced_zone]
        else:
            zone_ids = (
                OrderPricingSnapshot.objects
                .filter(product=product, zone__isnull=False)
                .values_list("zone_id", flat=True)
                .distinct()
            )
            zones = [None, *Zone.objects.filter(pk__in=list(zone_ids))]

        for zone in zones:
            try:
                analytics = upsert_price_analytics(product, zone=zone, period_days=period_days)
            except (ValueError, TypeError) as exc:
                logger.warning("Analyse de prix impossible pour %s: %s", product, exc)
                result.errors.append(f"{product}: {exc}")
                continue
            if analytics is None:
                result.skipped += 1
            else:
                result.refreshed += 1

    logger.info(
        "Rafraichissement des analyses: %s mises a jour, %s ignorees, %s erreurs.",
        result.refreshed,
        result.skipped,
        len(result.errors),
    )
    return result


# ---------------------------------------------------------------------------
# Reference prices
# ---------------------------------------------------------------------------

def _validate_reference_triple(unit, crate, consign):
    if unit is None or crate is None or unit <= 0 or crate <= 0:
        raise ValueError("Les prix de reference unitaire et casier doivent etre positifs.")
    if consign is not None and consign < 0:
        raise ValueError("La consigne ne peut pas etre negative.")


@transaction.atomic
def create_reference_price(
    product,
    *,
    unit_price,
    crate_price,
    consign_price=0,
    zone=None,
    effective_from=None,
    effective_to=None,
    actor=None,
) -> ReferencePrice:
    _validate_reference_triple(unit_price, crate_price, consign_price)
    effective_from = effective_from or timezone.now()
    if effective_to is not None and effective_to <= effective_from:
        raise ValueError("La date de fin doit etre posterieure a la date de debut.")

    reference = ReferencePrice.objects.create(
        product=product,
        zone=zone,
        reference_unit_price=unit_price,
        reference_crate_price=crate_price,
        reference_consign_price=consign_price or 0,
        effective_from=effective_from,
        effective_to=effective_to,
        created_by=actor,
        updated_by=actor,
    )
    logger.info("Prix de reference cree pour %s (zone=%s).", product, zone or "toutes")
    return reference


@transaction.atomic
def update_reference_price(reference, actor=None, **changes) -> ReferencePrice:
    allowed = {
        "reference_unit_price",
        "reference_crate_price",
        "reference_consign_price",
        "effective_from",
        "effective_to",
        "is_active",
    }
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Champs non modifiables: {', '.join(sorted(unknown))}")

    locked = ReferencePrice.objects.select_for_update().get(pk=reference.pk)
    for name, value in changes.items():
        setattr(locked, name, value)
    _validate_reference_triple(
        locked.reference_unit_price,
        locked.reference_crate_price,
        locked.reference_consign_price,
    )
    locked.updated_by = actor
    locked.save()
    return locked


@transaction.atomic
def deactivate_reference_price(reference, actor=None) -> ReferencePrice:
    locked = ReferencePrice.objects.select_for_update().get(pk=reference.pk)
    if not locked.is_active:
        raise ValueError("Ce prix de reference est deja inactif.")
    locked.is_active = False
    locked.updated_by = actor
    locked.save(update_fields=["is_active", "updated_by", "updated_at"])
    logger.info("Prix de reference %s desactive.", locked.pk)
    return locked


# ---------------------------------------------------------------------------
# Supplier price grids
# ---------------------------------------------------------------------------

def _write_history(grid, change_type, actor=None, old=None, reason="") -> SupplierPriceGridHistory:
    old = old or {}
    return SupplierPriceGridHistory.objects.create(
        grid=grid,
        supplier_id=grid.supplier_id,
        product_id=grid.product_id,
        old_unit_price=old.get("unit_price"),
        new_unit_price=grid.unit_price,
        old_crate_price=old.get("crate_price"),
        new_crate_price=grid.crate_price,
        old_consign_price=old.get("consign_price"),
        new_consign_price=grid.consign_price,
        change_type=change_type,
        change_reason=reason or "",
        changed_by=actor,
    )


def _validate_grid_prices(unit_price, crate_price, consign_price):
    if unit_price is None or crate_price is None or unit_price <= 0 or crate_price <= 0:
        raise ValueError("Les prix unitaire et casier doivent etre strictement positifs.")
    if consign_price is not None and consign_price < 0:
        raise ValueError("La consigne ne peut pas etre negative.")


def _deactivate_active_grids(supplier_id, product_id, zone_id, actor, exclude_pk=None):
    previous = (
        SupplierPriceGrid.objects
        .select_for_update()
        .filter(supplier_id=supplier_id, product_id=product_id, zone_id=zone_id, is_active=True)
    )
    if exclude_pk is not None:
        previous = previous.exclude(pk=exclude_pk)
    for grid in previous:
        grid.is_active = False
        grid.save(update_fields=["is_active", "updated_at"])
        _write_history(
            grid,
            SupplierPriceGridHistory.ChangeType.DEACTIVATED,
            actor=actor,
            reason="Remplacee par une nouvelle grille.",
        )


@transaction.atomic
def create_supplier_grid(
    supplier,
    product,
    *,
    unit_price,
    crate_price,
    consign_price=0,
    zone=None,
    initial_stock=0,
    actor=None,
    **extra,
) -> SupplierPriceGrid:
    """Create a supplier grid, replacing the supplier's active one.

    ``sold_quantity`` always starts at zero.
    """
    if not getattr(supplier, "is_supplier", False):
        raise ValueError("Seul un fournisseur peut publier une grille tarifaire.")
    _validate_grid_prices(unit_price, crate_price, consign_price)
    if initial_stock is None or initial_stock < 0:
        raise ValueError("Le stock initial ne peut pas etre negatif.")

    _deactivate_active_grids(supplier.pk, product.pk, getattr(zone, "pk", None), actor)

    grid = SupplierPriceGrid.objects.create(
        supplier=supplier,
        product=product,
        zone=zone,
        unit_price=unit_price,
        crate_price=crate_price,
        consign_price=consign_price or 0,
        initial_stock=initial_stock,
        sold_quantity=0,
        **extra,
    )
    _write_history(grid, SupplierPriceGridHistory.ChangeType.CREATED, actor=actor or supplier)
    logger.info("Grille tarifaire creee: %s / %s (%s FCFA).", supplier, product, crate_price)
    return grid


GRID_EDITABLE_FIELDS = {
    "unit_price",
    "crate_price",
    "consign_price",
    "initial_stock",
    "minimum_order_quantity",
    "maximum_order_quantity",
    "discount_percentage",
    "effective_from",
    "effective_to",
    "notes",
}


@transaction.atomic
def update_supplier_grid(grid, actor=None, reason="", **changes) -> SupplierPriceGrid:
    """Apply *changes* to a grid; price changes are recorded in the history."""
    unknown = set(changes) - GRID_EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Champs non modifiables: {', '.join(sorted(unknown))}")

    locked = SupplierPriceGrid.objects.select_for_update().get(pk=grid.pk)
    old = {
        "unit_price": locked.unit_price,
        "crate_price": locked.crate_price,
        "consign_price": locked.consign_price,
    }
    for name, value in changes.items():
        setattr(locked, name, value)

    _validate_grid_prices(locked.unit_price, locked.crate_price, locked.consign_price)
    if locked.initial_stock < 0:
        raise ValueError("Le stock initial ne peut pas etre negatif.")
    if (
        locked.maximum_order_quantity is not None
        and locked.maximum_order_quantity < locked.minimum_order_quantity
    ):
        raise ValueError("La quantite maximum doit etre superieure a la quantite minimum.")

    locked.save()
    if any(old[name] != getattr(locked, name) for name in old):
        _write_history(
            locked,
            SupplierPriceGridHistory.ChangeType.UPDATED,
            actor=actor,
            old=old,
            reason=reason,
        )
    return locked


@transaction.atomic
def deactivate_supplier_grid(grid, actor=None, reason="") -> SupplierPriceGrid:
    locked = SupplierPriceGrid.objects.select_for_update().get(pk=grid.pk)
    if not locked.is_active:
        raise ValueError("Cette grille tarifaire est deja inactive.")
    locked.is_active = False
    locked.save(update_fields=["is_active", "updated_at"])
    _write_history(locked, SupplierPriceGridHistory.ChangeType.DEACTIVATED, actor=actor, reason=reason)
    logger.info("Grille tarifaire %s desactivee.", locked.pk)
    return locked


@transaction.atomic
def activate_supplier_grid(grid, actor=None, reason="") -> SupplierPriceGrid:
    """Re-activate a grid, deactivating the supplier's current one."""
    locked = SupplierPriceGrid.objects.select_for_update().get(pk=grid.pk)
    if locked.is_active:
        raise ValueError("Cette grille tarifaire est deja active.")
    _deactivate_active_grids(
        locked.supplier_id, locked.product_id, locked.zone_id, actor, exclude_pk=locked.pk
    )
    locked.is_active = True
    locked.save(update_fields=["is_active", "updated_at"])
    _write_history(locked, SupplierPriceGridHistory.ChangeType.ACTIVATED, actor=actor, reason=reason)
    return locked


@transaction.atomic
def record_order_pricing(
    grid,
    quantity,
    *,
    order_reference="",
    ordered_at=None,
) -> OrderPricingSnapshot:
    """Record a sale against a grid.

    Stores the applied crate price (with the reference price of the moment)
    and increments ``sold_quantity``. Selling past the initial stock is
    allowed and only logged.
    """
    if quantity is None or quantity <= 0:
        raise ValueError("La quantite vendue doit etre positive.")

    locked = SupplierPriceGrid.objects.select_for_update().select_related("product", "zone").get(pk=grid.pk)
    if not locked.is_active:
        raise ValueError("Impossible de vendre sur une grille inactive.")

    try:
        reference = fetch_reference_price(locked.product, locked.zone).crate or None
    except ReferencePriceNotFound:
        reference = None

    snapshot = OrderPricingSnapshot.objects.create(
        product=locked.product,
        zone=locked.zone,
        supplier_id=locked.supplier_id,
        order_reference=order_reference or "",
        reference_crate_price=reference,
        applied_crate_price=locked.crate_price,
        quantity=quantity,
        ordered_at=ordered_at or timezone.now(),
    )
    SupplierPriceGrid.objects.filter(pk=locked.pk).update(
        sold_quantity=F("sold_quantity") + quantity,
    )
    locked.refresh_from_db(fields=["sold_quantity"])
    if locked.is_oversold:
        logger.warning(
            "Grille %s en survente: stock final %s.",
            locked.pk,
            locked.stock_final,
        )
    return snapshot


@transaction.atomic
def reset_sold_quantities(supplier, actor=None) -> int:
    """Reset ``sold_quantity`` of every active grid of *supplier* to zero."""
    grids = list(
        SupplierPriceGrid.objects
        .select_for_update()
        .filter(supplier=supplier, is_active=True, sold_quantity__gt=0)
    )
    for grid in grids:
        _write_history(
            grid,
            SupplierPriceGridHistory.ChangeType.STOCK_RESET,
            actor=actor or supplier,
            reason=f"Quantite vendue remise a zero ({grid.sold_quantity}).",
        )
    count = SupplierPriceGrid.objects.filter(pk__in=[g.pk for g in grids]).update(sold_quantity=0)
    logger.info("Quantites vendues remises a zero pour %s (%s grilles).", supplier, count)
    return count
