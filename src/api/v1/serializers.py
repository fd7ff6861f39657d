"""Serializers for the RAVITO API v1."""
from django.contrib.auth import get_user_model
from rest_framework import serializers

from catalog.models import Product
from credits.ledger import FreezePolicy
from credits.models import CreditCustomer, CreditTransaction, CreditTransactionItem
from pricing.models import (
    PRICE_FIELDS,
    OrderPricingSnapshot,
    PriceAnalytics,
    ReferencePrice,
    SupplierPriceGrid,
    SupplierPriceGridHistory,
    Zone,
)

User = get_user_model()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class MeSerializer(serializers.ModelSerializer):
    """Current user profile."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'phone',
            'business_name', 'display_name', 'role', 'organization',
        ]
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Catalog / Pricing Serializers
# ---------------------------------------------------------------------------

class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product model."""

    has_reference_price = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'reference', 'name', 'brand', 'category', 'crate_type',
            'volume', 'reference_unit_price', 'reference_crate_price',
            'reference_consign_price', 'has_reference_price', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ZoneSerializer(serializers.ModelSerializer):

    class Meta:
        model = Zone
        fields = ['id', 'name', 'city', 'is_active', 'created_at']
        read_only_fields = ['id', 'created_at']


class ReferencePriceSerializer(serializers.ModelSerializer):
    """Serializer for zone reference prices."""

    product_name = serializers.CharField(source='product.name', read_only=True)
    zone_name = serializers.CharField(source='zone.name', read_only=True, default=None)

    class Meta:
        model = ReferencePrice
        fields = [
            'id', 'product', 'product_name', 'zone', 'zone_name',
            'reference_unit_price', 'reference_crate_price',
            'reference_consign_price', 'effective_from', 'effective_to',
            'is_active', 'created_by', 'updated_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_active', 'created_by', 'updated_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        unit = attrs.get('reference_unit_price', getattr(self.instance, 'reference_unit_price', None))
        crate = attrs.get('reference_crate_price', getattr(self.instance, 'reference_crate_price', None))
        if not unit or not crate:
            raise serializers.ValidationError(
                'Les prix de reference unitaire et casier doivent etre positifs.'
            )
        start = attrs.get('effective_from', getattr(self.instance, 'effective_from', None))
        end = attrs.get('effective_to', getattr(self.instance, 'effective_to', None))
        if start and end and end <= start:
            raise serializers.ValidationError(
                {'effective_to': 'La date de fin doit etre posterieure a la date de debut.'}
            )
        return attrs


class SupplierPriceGridSerializer(serializers.ModelSerializer):
    """Serializer for a supplier's price grid."""

    product_name = serializers.CharField(source='product.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.display_name', read_only=True)
    stock_final = serializers.IntegerField(read_only=True)
    is_oversold = serializers.BooleanField(read_only=True)

    class Meta:
        model = SupplierPriceGrid
        fields = [
            'id', 'supplier', 'supplier_name', 'product', 'product_name', 'zone',
            'unit_price', 'crate_price', 'consign_price', 'initial_stock',
            'sold_quantity', 'stock_final', 'is_oversold',
            'minimum_order_quantity', 'maximum_order_quantity',
            'discount_percentage', 'effective_from', 'effective_to',
            'is_active', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'supplier', 'sold_quantity', 'is_active', 'created_at', 'updated_at',
        ]

    def validate(self, attrs):
        unit = attrs.get('unit_price', getattr(self.instance, 'unit_price', None))
        crate = attrs.get('crate_price', getattr(self.instance, 'crate_price', None))
        if not unit or not crate:
            raise serializers.ValidationError(
                'Les prix unitaire et casier doivent etre strictement positifs.'
            )
        return attrs


class SupplierPriceGridHistorySerializer(serializers.ModelSerializer):

    change_type_display = serializers.CharField(source='get_change_type_display', read_only=True)

    class Meta:
        model = SupplierPriceGridHistory
        fields = [
            'id', 'grid', 'supplier', 'product', 'change_type', 'change_type_display',
            'old_unit_price', 'new_unit_price', 'old_crate_price', 'new_crate_price',
            'old_consign_price', 'new_consign_price', 'change_reason',
            'changed_by', 'created_at',
        ]
        read_only_fields = fields


class RecordSaleSerializer(serializers.Serializer):
    """Serializer for recording a sale against a grid."""

    quantity = serializers.IntegerField(min_value=1)
    order_reference = serializers.CharField(required=False, default='', allow_blank=True, max_length=64)
    ordered_at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class GridImportSerializer(serializers.Serializer):
    """Upload of an .xlsx supplier grid."""

    file = serializers.FileField()
    zone = serializers.PrimaryKeyRelatedField(
        queryset=Zone.objects.filter(is_active=True),
        required=False,
        allow_null=True,
        default=None,
    )

    def validate_file(self, value):
        if not value.name.lower().endswith('.xlsx'):
            raise serializers.ValidationError('Seuls les fichiers .xlsx sont acceptes.')
        return value


class OrderPricingSnapshotSerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderPricingSnapshot
        fields = [
            'id', 'product', 'zone', 'supplier', 'order_reference',
            'reference_crate_price', 'applied_crate_price', 'quantity', 'ordered_at',
        ]
        read_only_fields = fields


class PriceAnalyticsSerializer(serializers.ModelSerializer):
    """Serializer for PriceAnalytics snapshots."""

    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = PriceAnalytics
        fields = [
            'id', 'product', 'product_name', 'zone', 'period_start', 'period_end',
            'reference_price_avg', 'supplier_price_min', 'supplier_price_max',
            'supplier_price_avg', 'supplier_price_median',
            'avg_variance_percentage', 'max_variance_percentage',
            'total_orders', 'total_quantity', 'total_suppliers',
            'calculated_at', 'is_current',
        ]
        read_only_fields = fields


class VarianceQuerySerializer(serializers.Serializer):
    zone = serializers.PrimaryKeyRelatedField(
        queryset=Zone.objects.all(), required=False, allow_null=True, default=None,
    )
    price_field = serializers.ChoiceField(choices=PRICE_FIELDS, required=False, default='crate')


class TrendQuerySerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    date_from = serializers.DateTimeField()
    date_to = serializers.DateTimeField()
    zone = serializers.PrimaryKeyRelatedField(
        queryset=Zone.objects.all(), required=False, allow_null=True, default=None,
    )

    def validate(self, attrs):
        if attrs['date_to'] < attrs['date_from']:
            raise serializers.ValidationError(
                {'date_to': 'La date de fin doit etre posterieure a la date de debut.'}
            )
        return attrs


class AnalyticsRefreshSerializer(serializers.Serializer):
    product = serializers.UUIDField(required=False, allow_null=True, default=None)
    zone = serializers.UUIDField(required=False, allow_null=True, default=None)
    period_days = serializers.IntegerField(min_value=1, max_value=366, required=False, default=30)


# ---------------------------------------------------------------------------
# Credit Serializers
# ---------------------------------------------------------------------------

class CreditCustomerSerializer(serializers.ModelSerializer):
    """Serializer for CreditCustomer. Balances are read-only."""

    available_credit = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = CreditCustomer
        fields = [
            'id', 'organization', 'name', 'phone', 'address', 'notes',
            'credit_limit', 'current_balance', 'total_credited', 'total_paid',
            'available_credit', 'status', 'last_payment_date', 'freeze_reason',
            'frozen_at', 'limit_before_freeze', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'organization', 'current_balance', 'total_credited', 'total_paid',
            'available_credit', 'status', 'last_payment_date', 'freeze_reason',
            'frozen_at', 'limit_before_freeze', 'is_active', 'created_at', 'updated_at',
        ]


class CreditTransactionItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = CreditTransactionItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price', 'subtotal']
        read_only_fields = fields


class CreditTransactionSerializer(serializers.ModelSerializer):
    """Serializer for CreditTransaction (read-only)."""

    items = CreditTransactionItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = CreditTransaction
        fields = [
            'id', 'customer', 'customer_name', 'transaction_type', 'amount',
            'payment_method', 'notes', 'transaction_date', 'balance_after',
            'items', 'created_by', 'created_at',
        ]
        read_only_fields = fields


class ConsumptionItemSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(
        queryset=Product.objects.all(), required=False, allow_null=True, default=None,
    )
    product_name = serializers.CharField(required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.IntegerField(min_value=0)
    subtotal = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs.get('product') is None and not attrs.get('product_name'):
            raise serializers.ValidationError('Chaque ligne doit indiquer un produit.')
        return attrs


class ConsumptionSerializer(serializers.Serializer):
    """Serializer for recording a consumption on credit."""

    amount = serializers.IntegerField(required=False, allow_null=True, default=None)
    items = ConsumptionItemSerializer(many=True, required=False, default=list)
    notes = serializers.CharField(required=False, default='', allow_blank=True)
    transaction_date = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs.get('amount') is None and not attrs.get('items'):
            raise serializers.ValidationError('Indiquez un montant ou au moins une ligne.')
        return attrs


class PaymentSerializer(serializers.Serializer):
    """Serializer for recording a repayment."""

    amount = serializers.IntegerField()
    payment_method = serializers.ChoiceField(
        choices=CreditTransaction.PaymentMethod.choices,
        default=CreditTransaction.PaymentMethod.CASH,
    )
    notes = serializers.CharField(required=False, default='', allow_blank=True)
    transaction_date = serializers.DateTimeField(required=False, allow_null=True, default=None)


class FreezeSerializer(serializers.Serializer):
    policy = serializers.ChoiceField(choices=[p.value for p in FreezePolicy])
    new_limit = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)
    reason = serializers.CharField(required=False, default='', allow_blank=True, max_length=255)


class NewLimitSerializer(serializers.Serializer):
    new_limit = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)


class DisableSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default='', allow_blank=True, max_length=255)


class MonthlyStatsQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    month = serializers.IntegerField(min_value=1, max_value=12)


class AnnualStatsQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
