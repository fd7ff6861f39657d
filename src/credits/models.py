"""Models for the credits app.

A client business (``accounts.Organization``) keeps a "carnet de credit":
customers who consume on credit and repay later. Balances are integer FCFA.
"""
from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# CreditCustomer
# ---------------------------------------------------------------------------

class CreditCustomer(TimeStampedModel):
    """A customer of an organization allowed to consume on credit."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Actif"
        FROZEN = "frozen", "Gele"
        DISABLED = "disabled", "Desactive"

    organization = models.ForeignKey(
        "accounts.Organization",
        on_delete=models.CASCADE,
        related_name="credit_customers",
        verbose_name="organisation",
    )
    name = models.CharField("nom", max_length=200)
    phone = models.CharField("telephone", max_length=30, blank=True, default="")
    address = models.CharField("adresse", max_length=255, blank=True, default="")
    notes = models.TextField("notes", blank=True, default="")
    credit_limit = models.PositiveIntegerField(
        "plafond de credit",
        default=0,
        help_text="0 = pas de plafond.",
    )
    current_balance = models.BigIntegerField(
        "solde",
        default=0,
        help_text="Positif = le client doit de l'argent.",
    )
    total_credited = models.BigIntegerField("total credite", default=0)
    total_paid = models.BigIntegerField("total rembourse", default=0)
    status = models.CharField(
        "statut",
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    last_payment_date = models.DateTimeField("dernier paiement", null=True, blank=True)
    freeze_reason = models.CharField("motif du gel", max_length=255, blank=True, default="")
    frozen_at = models.DateTimeField("gele le", null=True, blank=True)
    limit_before_freeze = models.PositiveIntegerField("plafond avant gel", null=True, blank=True)
    is_active = models.BooleanField("actif", default=True, db_index=True)

    class Meta:
        verbose_name = "client credit"
        verbose_name_plural = "clients credit"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["organization", "status"], name="credit_customer_org_status"),
        ]

    def __str__(self):
        return self.name

    @property
    def available_credit(self):
        """Remaining credit, or ``None`` when the customer has no limit."""
        if not self.credit_limit:
            return None
        return self.credit_limit - self.current_balance


# ---------------------------------------------------------------------------
# CreditTransaction
# ---------------------------------------------------------------------------

class CreditTransaction(TimeStampedModel):
    """An immutable consumption or payment on a customer's carnet."""

    class TransactionType(models.TextChoices):
        CONSUMPTION = "consumption", "Consommation"
        PAYMENT = "payment", "Paiement"

    class PaymentMethod(models.TextChoices):
        CASH = "cash", "Especes"
        MOBILE_MONEY = "mobile_money", "Mobile Money"
        TRANSFER = "transfer", "Virement"

    organization = models.ForeignKey(
        "accounts.Organization",
        on_delete=models.CASCADE,
        related_name="credit_transactions",
        verbose_name="organisation",
    )
    customer = models.ForeignKey(
        CreditCustomer,
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name="client",
    )
    transaction_type = models.CharField(
        "type",
        max_length=12,
        choices=TransactionType.choices,
    )
    amount = models.PositiveIntegerField("montant")
    payment_method = models.CharField(
        "moyen de paiement",
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
    )
    notes = models.TextField("notes", blank=True, default="")
    transaction_date = models.DateTimeField("date", default=timezone.now, db_index=True)
    balance_after = models.BigIntegerField(
        "solde apres",
        help_text="Solde du client apres cette operation.",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_transactions",
        verbose_name="cree par",
    )

    class Meta:
        verbose_name = "operation credit"
        verbose_name_plural = "operations credit"
        ordering = ["-transaction_date", "-created_at"]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.amount} FCFA - {self.customer}"


# ---------------------------------------------------------------------------
# CreditTransactionItem
# ---------------------------------------------------------------------------

class CreditTransactionItem(TimeStampedModel):
    """A consumed product line of a consumption transaction."""

    transaction = models.ForeignKey(
        CreditTransaction,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name="operation",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_items",
        verbose_name="produit",
    )
    product_name = models.CharField("produit", max_length=255)
    quantity = models.PositiveIntegerField("quantite")
    unit_price = models.PositiveIntegerField("prix unitaire")
    subtotal = models.PositiveIntegerField("sous-total")

    class Meta:
        verbose_name = "ligne d'operation credit"
        verbose_name_plural = "lignes d'operation credit"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.quantity} x {self.product_name}"
