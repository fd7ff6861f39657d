"""Admin configuration for the catalog app."""
from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "reference",
        "brand",
        "category",
        "crate_type",
        "reference_unit_price",
        "reference_crate_price",
        "reference_consign_price",
        "is_active",
    )
    list_filter = ("is_active", "category", "crate_type")
    search_fields = ("name", "reference", "brand")
    list_editable = ("is_active",)
    readonly_fields = ("id", "created_at", "updated_at")
    fieldsets = (
        (None, {
            "fields": ("reference", "name", "brand", "category", "crate_type", "volume"),
        }),
        ("Prix de reference (FCFA)", {
            "fields": (
                "reference_unit_price",
                "reference_crate_price",
                "reference_consign_price",
            ),
        }),
        ("Statut", {
            "fields": ("is_active",),
        }),
        ("Metadonnees", {
            "classes": ("collapse",),
            "fields": ("id", "created_at", "updated_at"),
        }),
    )
