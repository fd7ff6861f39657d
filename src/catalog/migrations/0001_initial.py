import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "reference",
                    models.CharField(
                        help_text="Reference interne unique du produit.",
                        max_length=50,
                        unique=True,
                        verbose_name="reference",
                    ),
                ),
                ("name", models.CharField(max_length=255, verbose_name="nom")),
                ("brand", models.CharField(blank=True, default="", max_length=120, verbose_name="marque")),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("biere", "Biere"),
                            ("soda", "Soda"),
                            ("vin", "Vin"),
                            ("eau", "Eau"),
                            ("spiritueux", "Spiritueux"),
                        ],
                        db_index=True,
                        default="biere",
                        max_length=20,
                        verbose_name="categorie",
                    ),
                ),
                (
                    "crate_type",
                    models.CharField(
                        choices=[
                            ("C24", "Casier 24 bouteilles"),
                            ("C12", "Casier 12 bouteilles"),
                            ("C12V", "Casier 12 bouteilles (vin)"),
                            ("C6", "Casier 6 bouteilles"),
                        ],
                        default="C24",
                        max_length=5,
                        verbose_name="type de casier",
                    ),
                ),
                ("volume", models.CharField(blank=True, default="", max_length=30, verbose_name="contenance")),
                ("reference_unit_price", models.PositiveIntegerField(default=0, verbose_name="prix unitaire de reference")),
                ("reference_crate_price", models.PositiveIntegerField(default=0, verbose_name="prix casier de reference")),
                ("reference_consign_price", models.PositiveIntegerField(default=0, verbose_name="consigne de reference")),
                ("is_active", models.BooleanField(default=True, verbose_name="actif")),
            ],
            options={
                "verbose_name": "produit",
                "verbose_name_plural": "produits",
                "ordering": ["name"],
            },
        ),
    ]
