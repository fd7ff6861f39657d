"""Models for the pricing app.

Reference prices, supplier price grids (with stock counters), the applied
price of each order line and the periodic analytics snapshots computed from
them. Every amount is an integer number of FCFA.
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import TimeStampedModel


PRICE_FIELDS = ("unit", "crate", "consign")


# ---------------------------------------------------------------------------
# Zone
# ---------------------------------------------------------------------------

class Zone(TimeStampedModel):
    """Delivery zone (commune) served by suppliers."""

    name = models.CharField("nom", max_length=120, unique=True)
    city = models.CharField("ville", max_length=120, blank=True, default="Abidjan")
    is_active = models.BooleanField("active", default=True)

    class Meta:
        verbose_name = "zone"
        verbose_name_plural = "zones"
        ordering = ["name"]

    def __str__(self):
        return self.name


# ---------------------------------------------------------------------------
# ReferencePrice
# ---------------------------------------------------------------------------

class ReferencePrice(TimeStampedModel):
    """Administrator price for a product, optionally limited to one zone."""

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="reference_prices",
        verbose_name="produit",
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="reference_prices",
        verbose_name="zone",
    )
    reference_unit_price = models.PositiveIntegerField("prix unitaire de reference")
    reference_crate_price = models.PositiveIntegerField("prix casier de reference")
    reference_consign_price = models.PositiveIntegerField("consigne de reference", default=0)
    effective_from = models.DateTimeField("valable a partir du", default=timezone.now)
    effective_to = models.DateTimeField("valable jusqu'au", null=True, blank=True)
    is_active = models.BooleanField("actif", default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="cree par",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="modifie par",
    )

    class Meta:
        verbose_name = "prix de reference"
        verbose_name_plural = "prix de reference"
        ordering = ["-created_at"]

    def __str__(self):
        zone = self.zone.name if self.zone_id else "toutes zones"
        return f"{self.product} - {zone}: {self.reference_crate_price} FCFA"

    def is_effective(self, at=None):
        at = at or timezone.now()
        if not self.is_active or self.effective_from > at:
            return False
        return self.effective_to is None or self.effective_to >= at


# ---------------------------------------------------------------------------
# SupplierPriceGrid
# ---------------------------------------------------------------------------

class SupplierPriceGrid(TimeStampedModel):
    """A supplier's own price quote and stock counters for one product."""

    supplier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="price_grids",
        verbose_name="fournisseur",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="supplier_grids",
        verbose_name="produit",
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="supplier_grids",
        verbose_name="zone",
    )
    unit_price = models.PositiveIntegerField("prix unitaire")
    crate_price = models.PositiveIntegerField("prix casier")
    consign_price = models.PositiveIntegerField("consigne", default=0)
    initial_stock = models.PositiveIntegerField("stock initial", default=0)
    sold_quantity = models.PositiveIntegerField(
        "quantite vendue",
        default=0,
        help_text="Croit a chaque vente jusqu'a la remise a zero explicite.",
    )
    minimum_order_quantity = models.PositiveIntegerField("quantite minimum", default=1)
    maximum_order_quantity = models.PositiveIntegerField(
        "quantite maximum",
        null=True,
        blank=True,
    )
    discount_percentage = models.DecimalField(
        "remise (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    effective_from = models.DateTimeField("valable a partir du", default=timezone.now)
    effective_to = models.DateTimeField("valable jusqu'au", null=True, blank=True)
    is_active = models.BooleanField("active", default=True, db_index=True)
    notes = models.TextField("notes", blank=True, default="")

    class Meta:
        verbose_name = "grille tarifaire fournisseur"
        verbose_name_plural = "grilles tarifaires fournisseur"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["supplier", "product", "zone"],
                condition=Q(is_active=True),
                nulls_distinct=False,
                name="uniq_active_grid_per_supplier_product_zone",
            ),
        ]

    def __str__(self):
        return f"{self.supplier} - {self.product}: {self.crate_price} FCFA"

    @property
    def stock_final(self) -> int:
        """Remaining stock; negative when the supplier sold more than declared."""
        return self.initial_stock - self.sold_quantity

    @property
    def is_oversold(self) -> bool:
        return self.stock_final < 0

    def price_for(self, price_field: str) -> int:
        if price_field not in PRICE_FIELDS:
            raise ValueError(f"Champ de prix inconnu: {price_field}")
        return getattr(self, f"{price_field}_price")


# ---------------------------------------------------------------------------
# SupplierPriceGridHistory
# ---------------------------------------------------------------------------

class SupplierPriceGridHistory(TimeStampedModel):
    """Append-only audit row describing one change to a supplier grid."""

    class ChangeType(models.TextChoices):
        CREATED = "created", "Creation"
        UPDATED = "updated", "Modification"
        DELETED = "deleted", "Suppression"
        ACTIVATED = "activated", "Activation"
        DEACTIVATED = "deactivated", "Desactivation"
        STOCK_RESET = "stock_reset", "Remise a zero des quantites"

    grid = models.ForeignKey(
        SupplierPriceGrid,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="history",
        verbose_name="grille",
    )
    supplier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="price_grid_history",
        verbose_name="fournisseur",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="supplier_grid_history",
        verbose_name="produit",
    )
    old_unit_price = models.PositiveIntegerField("ancien prix unitaire", null=True, blank=True)
    new_unit_price = models.PositiveIntegerField("nouveau prix unitaire", null=True, blank=True)
    old_crate_price = models.PositiveIntegerField("ancien prix casier", null=True, blank=True)
    new_crate_price = models.PositiveIntegerField("nouveau prix casier", null=True, blank=True)
    old_consign_price = models.PositiveIntegerField("ancienne consigne", null=True, blank=True)
    new_consign_price = models.PositiveIntegerField("nouvelle consigne", null=True, blank=True)
    change_type = models.CharField(
        "type de changement",
        max_length=20,
        choices=ChangeType.choices,
    )
    change_reason = models.CharField("motif", max_length=255, blank=True, default="")
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="modifie par",
    )

    class Meta:
        verbose_name = "historique grille tarifaire"
        verbose_name_plural = "historique grilles tarifaires"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_change_type_display()} - {self.product} ({self.created_at:%d/%m/%Y})"


# ---------------------------------------------------------------------------
# OrderPricingSnapshot
# ---------------------------------------------------------------------------

class OrderPricingSnapshot(TimeStampedModel):
    """Price actually applied to one order line, frozen at order time."""

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="pricing_snapshots",
        verbose_name="produit",
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pricing_snapshots",
        verbose_name="zone",
    )
    supplier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pricing_snapshots",
        verbose_name="fournisseur",
    )
    order_reference = models.CharField("reference commande", max_length=64, blank=True, default="")
    reference_crate_price = models.PositiveIntegerField(
        "prix casier de reference",
        null=True,
        blank=True,
    )
    applied_crate_price = models.PositiveIntegerField("prix casier applique")
    quantity = models.PositiveIntegerField("quantite", default=1)
    ordered_at = models.DateTimeField("commande le", default=timezone.now, db_index=True)

    class Meta:
        verbose_name = "prix applique"
        verbose_name_plural = "prix appliques"
        ordering = ["-ordered_at"]

    def __str__(self):
        return f"{self.product} @ {self.applied_crate_price} FCFA ({self.ordered_at:%d/%m/%Y})"


# ---------------------------------------------------------------------------
# PriceAnalytics
# ---------------------------------------------------------------------------

class PriceAnalytics(TimeStampedModel):
    """Market statistics for a product (and zone) over one period.

    Only one row per (product, zone) carries ``is_current=True``.
    """

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="price_analytics",
        verbose_name="produit",
    )
    zone = models.ForeignKey(
        Zone,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="price_analytics",
        verbose_name="zone",
    )
    period_start = models.DateTimeField("debut de periode")
    period_end = models.DateTimeField("fin de periode")
    reference_price_avg = models.PositiveIntegerField("prix de reference moyen", null=True, blank=True)
    supplier_price_min = models.PositiveIntegerField("prix fournisseur min")
    supplier_price_max = models.PositiveIntegerField("prix fournisseur max")
    supplier_price_avg = models.PositiveIntegerField("prix fournisseur moyen")
    supplier_price_median = models.PositiveIntegerField("prix fournisseur median")
    avg_variance_percentage = models.DecimalField(
        "ecart moyen (%)",
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    max_variance_percentage = models.DecimalField(
        "ecart max (%)",
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    total_orders = models.PositiveIntegerField("commandes", default=0)
    total_quantity = models.PositiveIntegerField("quantite totale", default=0)
    total_suppliers = models.PositiveIntegerField("fournisseurs", default=0)
    calculated_at = models.DateTimeField("calcule le", default=timezone.now)
    is_current = models.BooleanField("courant", default=True, db_index=True)

    class Meta:
        verbose_name = "analyse de prix"
        verbose_name_plural = "analyses de prix"
        ordering = ["-period_start"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "zone"],
                condition=Q(is_current=True),
                nulls_distinct=False,
                name="uniq_current_price_analytics",
            ),
        ]

    def __str__(self):
        return f"Analyse {self.product} ({self.period_start:%d/%m/%Y} - {self.period_end:%d/%m/%Y})"
