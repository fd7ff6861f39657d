"""Admin configuration for the credits app."""
from django.contrib import admin

from .models import CreditCustomer, CreditTransaction, CreditTransactionItem


# ---------------------------------------------------------------------------
# Inlines
# ---------------------------------------------------------------------------

class CreditTransactionInline(admin.TabularInline):
    model = CreditTransaction
    extra = 0
    fields = (
        "transaction_type",
        "amount",
        "payment_method",
        "balance_after",
        "transaction_date",
        "created_by",
    )
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class CreditTransactionItemInline(admin.TabularInline):
    model = CreditTransactionItem
    extra = 0
    fields = ("product", "product_name", "quantity", "unit_price", "subtotal")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# ---------------------------------------------------------------------------
# CreditCustomer
# ---------------------------------------------------------------------------

@admin.register(CreditCustomer)
class CreditCustomerAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "organization",
        "phone",
        "credit_limit",
        "current_balance",
        "status",
        "last_payment_date",
        "is_active",
    )
    list_filter = ("status", "is_active", "organization")
    search_fields = ("name", "phone")
    # Balances only move through credits.services.
    readonly_fields = (
        "id",
        "current_balance",
        "total_credited",
        "total_paid",
        "status",
        "last_payment_date",
        "freeze_reason",
        "frozen_at",
        "limit_before_freeze",
        "created_at",
        "updated_at",
    )
    inlines = [CreditTransactionInline]
    list_select_related = ("organization",)
    fieldsets = (
        (None, {
            "fields": ("organization", "name", "phone", "address", "notes"),
        }),
        ("Credit", {
            "fields": (
                "credit_limit",
                "current_balance",
                "total_credited",
                "total_paid",
                "last_payment_date",
            ),
        }),
        ("Statut", {
            "fields": ("status", "freeze_reason", "frozen_at", "limit_before_freeze", "is_active"),
        }),
        ("Metadonnees", {
            "classes": ("collapse",),
            "fields": ("id", "created_at", "updated_at"),
        }),
    )


# ---------------------------------------------------------------------------
# CreditTransaction
# ---------------------------------------------------------------------------

@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "customer",
        "transaction_type",
        "amount",
        "payment_method",
        "balance_after",
        "transaction_date",
        "created_by",
    )
    list_select_related = ("customer", "created_by")
    date_hierarchy = "transaction_date"
    list_filter = ("transaction_type", "payment_method")
    search_fields = ("customer__name", "notes")
    inlines = [CreditTransactionItemInline]
    readonly_fields = (
        "id",
        "organization",
        "customer",
        "transaction_type",
        "amount",
        "payment_method",
        "notes",
        "transaction_date",
        "balance_after",
        "created_by",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
