"""Models for the catalog app (beverage products and their reference prices)."""
from django.db import models

from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------

class Product(TimeStampedModel):
    """A beverage sold by the crate.

    The three ``reference_*`` prices are the catalog prices set by the
    RAVITO administrator. Zone-specific overrides live in
    ``pricing.ReferencePrice``.
    """

    class Category(models.TextChoices):
        BEER = "biere", "Biere"
        SODA = "soda", "Soda"
        WINE = "vin", "Vin"
        WATER = "eau", "Eau"
        SPIRITS = "spiritueux", "Spiritueux"

    class CrateType(models.TextChoices):
        C24 = "C24", "Casier 24 bouteilles"
        C12 = "C12", "Casier 12 bouteilles"
        C12V = "C12V", "Casier 12 bouteilles (vin)"
        C6 = "C6", "Casier 6 bouteilles"

    reference = models.CharField(
        "reference",
        max_length=50,
        unique=True,
        help_text="Reference interne unique du produit.",
    )
    name = models.CharField("nom", max_length=255)
    brand = models.CharField("marque", max_length=120, blank=True, default="")
    category = models.CharField(
        "categorie",
        max_length=20,
        choices=Category.choices,
        default=Category.BEER,
        db_index=True,
    )
    crate_type = models.CharField(
        "type de casier",
        max_length=5,
        choices=CrateType.choices,
        default=CrateType.C24,
    )
    volume = models.CharField("contenance", max_length=30, blank=True, default="")
    reference_unit_price = models.PositiveIntegerField("prix unitaire de reference", default=0)
    reference_crate_price = models.PositiveIntegerField("prix casier de reference", default=0)
    reference_consign_price = models.PositiveIntegerField("consigne de reference", default=0)
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "produit"
        verbose_name_plural = "produits"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.reference})"

    @property
    def has_reference_price(self) -> bool:
        return self.reference_crate_price > 0
