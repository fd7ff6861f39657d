import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Zone",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("name", models.CharField(max_length=120, unique=True, verbose_name="nom")),
                ("city", models.CharField(blank=True, default="Abidjan", max_length=120, verbose_name="ville")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
            ],
            options={
                "verbose_name": "zone",
                "verbose_name_plural": "zones",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ReferencePrice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("reference_unit_price", models.PositiveIntegerField(verbose_name="prix unitaire de reference")),
                ("reference_crate_price", models.PositiveIntegerField(verbose_name="prix casier de reference")),
                ("reference_consign_price", models.PositiveIntegerField(default=0, verbose_name="consigne de reference")),
                ("effective_from", models.DateTimeField(default=django.utils.timezone.now, verbose_name="valable a partir du")),
                ("effective_to", models.DateTimeField(blank=True, null=True, verbose_name="valable jusqu'au")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="actif")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="cree par",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reference_prices",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="modifie par",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reference_prices",
                        to="pricing.zone",
                        verbose_name="zone",
                    ),
                ),
            ],
            options={
                "verbose_name": "prix de reference",
                "verbose_name_plural": "prix de reference",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SupplierPriceGrid",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("unit_price", models.PositiveIntegerField(verbose_name="prix unitaire")),
                ("crate_price", models.PositiveIntegerField(verbose_name="prix casier")),
                ("consign_price", models.PositiveIntegerField(default=0, verbose_name="consigne")),
                ("initial_stock", models.PositiveIntegerField(default=0, verbose_name="stock initial")),
                (
                    "sold_quantity",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Croit a chaque vente jusqu'a la remise a zero explicite.",
                        verbose_name="quantite vendue",
                    ),
                ),
                ("minimum_order_quantity", models.PositiveIntegerField(default=1, verbose_name="quantite minimum")),
                ("maximum_order_quantity", models.PositiveIntegerField(blank=True, null=True, verbose_name="quantite maximum")),
                (
                    "discount_percentage",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, verbose_name="remise (%)"),
                ),
                ("effective_from", models.DateTimeField(default=django.utils.timezone.now, verbose_name="valable a partir du")),
                ("effective_to", models.DateTimeField(blank=True, null=True, verbose_name="valable jusqu'au")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="supplier_grids",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_grids",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="fournisseur",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="supplier_grids",
                        to="pricing.zone",
                        verbose_name="zone",
                    ),
                ),
            ],
            options={
                "verbose_name": "grille tarifaire fournisseur",
                "verbose_name_plural": "grilles tarifaires fournisseur",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SupplierPriceGridHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("old_unit_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="ancien prix unitaire")),
                ("new_unit_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="nouveau prix unitaire")),
                ("old_crate_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="ancien prix casier")),
                ("new_crate_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="nouveau prix casier")),
                ("old_consign_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="ancienne consigne")),
                ("new_consign_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="nouvelle consigne")),
                (
                    "change_type",
                    models.CharField(
                        choices=[
                            ("created", "Creation"),
                            ("updated", "Modification"),
                            ("deleted", "Suppression"),
                            ("activated", "Activation"),
                            ("deactivated", "Desactivation"),
                            ("stock_reset", "Remise a zero des quantites"),
                        ],
                        max_length=20,
                        verbose_name="type de changement",
                    ),
                ),
                ("change_reason", models.CharField(blank=True, default="", max_length=255, verbose_name="motif")),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="modifie par",
                    ),
                ),
                (
                    "grid",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="history",
                        to="pricing.supplierpricegrid",
                        verbose_name="grille",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="supplier_grid_history",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_grid_history",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="fournisseur",
                    ),
                ),
            ],
            options={
                "verbose_name": "historique grille tarifaire",
                "verbose_name_plural": "historique grilles tarifaires",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderPricingSnapshot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("order_reference", models.CharField(blank=True, default="", max_length=64, verbose_name="reference commande")),
                ("reference_crate_price", models.PositiveIntegerField(blank=True, null=True, verbose_name="prix casier de reference")),
                ("applied_crate_price", models.PositiveIntegerField(verbose_name="prix casier applique")),
                ("quantity", models.PositiveIntegerField(default=1, verbose_name="quantite")),
                ("ordered_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="commande le")),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricing_snapshots",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pricing_snapshots",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="fournisseur",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pricing_snapshots",
                        to="pricing.zone",
                        verbose_name="zone",
                    ),
                ),
            ],
            options={
                "verbose_name": "prix applique",
                "verbose_name_plural": "prix appliques",
                "ordering": ["-ordered_at"],
            },
        ),
        migrations.CreateModel(
            name="PriceAnalytics",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("period_start", models.DateTimeField(verbose_name="debut de periode")),
                ("period_end", models.DateTimeField(verbose_name="fin de periode")),
                ("reference_price_avg", models.PositiveIntegerField(blank=True, null=True, verbose_name="prix de reference moyen")),
                ("supplier_price_min", models.PositiveIntegerField(verbose_name="prix fournisseur min")),
                ("supplier_price_max", models.PositiveIntegerField(verbose_name="prix fournisseur max")),
                ("supplier_price_avg", models.PositiveIntegerField(verbose_name="prix fournisseur moyen")),
                ("supplier_price_median", models.PositiveIntegerField(verbose_name="prix fournisseur median")),
                (
                    "avg_variance_percentage",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=8, verbose_name="ecart moyen (%)"),
                ),
                (
                    "max_variance_percentage",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=8, verbose_name="ecart max (%)"),
                ),
                ("total_orders", models.PositiveIntegerField(default=0, verbose_name="commandes")),
                ("total_quantity", models.PositiveIntegerField(default=0, verbose_name="quantite totale")),
                ("total_suppliers", models.PositiveIntegerField(default=0, verbose_name="fournisseurs")),
                ("calculated_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="calcule le")),
                ("is_current", models.BooleanField(db_index=True, default=True, verbose_name="courant")),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_analytics",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="price_analytics",
                        to="pricing.zone",
                        verbose_name="zone",
                    ),
                ),
            ],
            options={
                "verbose_name": "analyse de prix",
                "verbose_name_plural": "analyses de prix",
                "ordering": ["-period_start"],
            },
        ),
        migrations.AddConstraint(
            model_name="supplierpricegrid",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_active", True)),
                fields=("supplier", "product", "zone"),
                name="uniq_active_grid_per_supplier_product_zone",
                nulls_distinct=False,
            ),
        ),
        migrations.AddConstraint(
            model_name="priceanalytics",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_current", True)),
                fields=("product", "zone"),
                name="uniq_current_price_analytics",
                nulls_distinct=False,
            ),
        ),
    ]
