import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditCustomer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("name", models.CharField(max_length=200, verbose_name="nom")),
                ("phone", models.CharField(blank=True, default="", max_length=30, verbose_name="telephone")),
                ("address", models.CharField(blank=True, default="", max_length=255, verbose_name="adresse")),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                (
                    "credit_limit",
                    models.PositiveIntegerField(default=0, help_text="0 = pas de plafond.", verbose_name="plafond de credit"),
                ),
                (
                    "current_balance",
                    models.BigIntegerField(
                        default=0,
                        help_text="Positif = le client doit de l'argent.",
                        verbose_name="solde",
                    ),
                ),
                ("total_credited", models.BigIntegerField(default=0, verbose_name="total credite")),
                ("total_paid", models.BigIntegerField(default=0, verbose_name="total rembourse")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Actif"), ("frozen", "Gele"), ("disabled", "Desactive")],
                        db_index=True,
                        default="active",
                        max_length=10,
                        verbose_name="statut",
                    ),
                ),
                ("last_payment_date", models.DateTimeField(blank=True, null=True, verbose_name="dernier paiement")),
                ("freeze_reason", models.CharField(blank=True, default="", max_length=255, verbose_name="motif du gel")),
                ("frozen_at", models.DateTimeField(blank=True, null=True, verbose_name="gele le")),
                ("limit_before_freeze", models.PositiveIntegerField(blank=True, null=True, verbose_name="plafond avant gel")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="actif")),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_customers",
                        to="accounts.organization",
                        verbose_name="organisation",
                    ),
                ),
            ],
            options={
                "verbose_name": "client credit",
                "verbose_name_plural": "clients credit",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["organization", "status"], name="credit_customer_org_status")],
            },
        ),
        migrations.CreateModel(
            name="CreditTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[("consumption", "Consommation"), ("payment", "Paiement")],
                        max_length=12,
                        verbose_name="type",
                    ),
                ),
                ("amount", models.PositiveIntegerField(verbose_name="montant")),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[("cash", "Especes"), ("mobile_money", "Mobile Money"), ("transfer", "Virement")],
                        default="",
                        max_length=20,
                        verbose_name="moyen de paiement",
                    ),
                ),
                ("notes", models.TextField(blank=True, default="", verbose_name="notes")),
                ("transaction_date", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="date")),
                (
                    "balance_after",
                    models.BigIntegerField(help_text="Solde du client apres cette operation.", verbose_name="solde apres"),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_transactions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="cree par",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="credits.creditcustomer",
                        verbose_name="client",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_transactions",
                        to="accounts.organization",
                        verbose_name="organisation",
                    ),
                ),
            ],
            options={
                "verbose_name": "operation credit",
                "verbose_name_plural": "operations credit",
                "ordering": ["-transaction_date", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="CreditTransactionItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("product_name", models.CharField(max_length=255, verbose_name="produit")),
                ("quantity", models.PositiveIntegerField(verbose_name="quantite")),
                ("unit_price", models.PositiveIntegerField(verbose_name="prix unitaire")),
                ("subtotal", models.PositiveIntegerField(verbose_name="sous-total")),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_items",
                        to="catalog.product",
                        verbose_name="produit",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="credits.credittransaction",
                        verbose_name="operation",
                    ),
                ),
            ],
            options={
                "verbose_name": "ligne d'operation credit",
                "verbose_name_plural": "lignes d'operation credit",
                "ordering": ["created_at"],
            },
        ),
    ]
