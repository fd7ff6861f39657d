"""Admin configuration for the pricing app."""
from django.contrib import admin

from .models import (
    OrderPricingSnapshot,
    PriceAnalytics,
    ReferencePrice,
    SupplierPriceGrid,
    SupplierPriceGridHistory,
    Zone,
)


# ---------------------------------------------------------------------------
# Inlines
# ---------------------------------------------------------------------------

class SupplierPriceGridHistoryInline(admin.TabularInline):
    model = SupplierPriceGridHistory
    extra = 0
    fields = (
        "change_type",
        "old_crate_price",
        "new_crate_price",
        "change_reason",
        "changed_by",
        "created_at",
    )
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# ---------------------------------------------------------------------------
# Zone
# ---------------------------------------------------------------------------

@admin.register(Zone)
class ZoneAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "is_active")
    list_filter = ("is_active", "city")
    search_fields = ("name", "city")
    list_editable = ("is_active",)


# ---------------------------------------------------------------------------
# ReferencePrice
# ---------------------------------------------------------------------------

@admin.register(ReferencePrice)
class ReferencePriceAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "zone",
        "reference_unit_price",
        "reference_crate_price",
        "reference_consign_price",
        "effective_from",
        "effective_to",
        "is_active",
    )
    list_filter = ("is_active", "zone")
    search_fields = ("product__name", "product__reference")
    list_select_related = ("product", "zone")
    readonly_fields = ("id", "created_by", "updated_by", "created_at", "updated_at")
    date_hierarchy = "effective_from"

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


# ---------------------------------------------------------------------------
# SupplierPriceGrid
# ---------------------------------------------------------------------------

@admin.register(SupplierPriceGrid)
class SupplierPriceGridAdmin(admin.ModelAdmin):
    list_display = (
        "supplier",
        "product",
        "zone",
        "crate_price",
        "initial_stock",
        "sold_quantity",
        "stock_final",
        "is_active",
    )
    list_filter = ("is_active", "zone")
    search_fields = ("product__name", "supplier__email", "supplier__business_name")
    list_select_related = ("supplier", "product", "zone")
    readonly_fields = ("id", "sold_quantity", "created_at", "updated_at")
    inlines = [SupplierPriceGridHistoryInline]


@admin.register(SupplierPriceGridHistory)
class SupplierPriceGridHistoryAdmin(admin.ModelAdmin):
    list_display = ("product", "supplier", "change_type", "old_crate_price", "new_crate_price", "created_at")
    list_filter = ("change_type",)
    search_fields = ("product__name", "supplier__email")
    list_select_related = ("product", "supplier")
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ---------------------------------------------------------------------------
# Snapshots & analytics
# ---------------------------------------------------------------------------

@admin.register(OrderPricingSnapshot)
class OrderPricingSnapshotAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "zone",
        "supplier",
        "reference_crate_price",
        "applied_crate_price",
        "quantity",
        "ordered_at",
    )
    list_filter = ("zone",)
    search_fields = ("product__name", "order_reference")
    list_select_related = ("product", "zone", "supplier")
    date_hierarchy = "ordered_at"


@admin.register(PriceAnalytics)
class PriceAnalyticsAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "zone",
        "period_start",
        "period_end",
        "supplier_price_avg",
        "avg_variance_percentage",
        "total_orders",
        "is_current",
    )
    list_filter = ("is_current", "zone")
    search_fields = ("product__name",)
    list_select_related = ("product", "zone")
    readonly_fields = [f.name for f in PriceAnalytics._meta.fields]
