"""ViewSets and API views for the RAVITO API v1."""
import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Organization
from catalog.models import Product
from core.export import queryset_to_csv_response
from credits import reports as credit_reports
from credits import services as credit_services
from credits.models import CreditCustomer, CreditTransaction
from credits.services import CreditOperationError
from pricing import services as pricing_services
from pricing import spreadsheets
from pricing.context import PricingContext
from pricing.models import (
    PriceAnalytics,
    ReferencePrice,
    SupplierPriceGrid,
    Zone,
)
from pricing.tasks import refresh_price_analytics

from api.v1.pagination import TransactionHistoryPagination
from api.v1.permissions import (
    IsAdminOrReadOnly,
    IsAdminRole,
    IsOrganizationMember,
    IsSupplierOrAdmin,
)
from api.v1.serializers import (
    AnalyticsRefreshSerializer,
    AnnualStatsQuerySerializer,
    ConsumptionSerializer,
    CreditCustomerSerializer,
    CreditTransactionSerializer,
    DisableSerializer,
    FreezeSerializer,
    GridImportSerializer,
    MeSerializer,
    MonthlyStatsQuerySerializer,
    NewLimitSerializer,
    PaymentSerializer,
    PriceAnalyticsSerializer,
    ProductSerializer,
    RecordSaleSerializer,
    ReferencePriceSerializer,
    SupplierPriceGridHistorySerializer,
    SupplierPriceGridSerializer,
    TrendQuerySerializer,
    VarianceQuerySerializer,
    ZoneSerializer,
)

logger = logging.getLogger("ravito")


def _validation_error(exc):
    """Turn a service-level ``ValueError`` into a DRF 400."""
    payload = {'detail': str(exc)}
    if isinstance(exc, CreditOperationError):
        payload['code'] = exc.code
    return ValidationError(payload)


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

class MeAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(MeSerializer(request.user).data)


# ---------------------------------------------------------------------------
# Product ViewSet
# ---------------------------------------------------------------------------

class ProductViewSet(viewsets.ModelViewSet):
    """
    Beverage catalog. Administrators write, every authenticated user reads.
    """

    serializer_class = ProductSerializer
    queryset = Product.objects.all()
    filterset_fields = ['category', 'crate_type', 'is_active']
    search_fields = ['name', 'reference', 'brand']
    ordering_fields = ['name', 'reference_crate_price', 'created_at']
    permission_classes = [IsAdminOrReadOnly]

    @action(detail=True, methods=['get'], url_path='variance')
    def variance(self, request, pk=None):
        """Supplier prices of this product compared with its reference price."""
        product = self.get_object()
        query = VarianceQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        context = PricingContext.build(
            zone=query.validated_data['zone'],
            price_field=query.validated_data['price_field'],
        )
        result = pricing_services.calculate_price_variance(product, context)
        if not result.ok:
            return Response({'variance': None, 'reason': result.error.value})
        return Response({'variance': result.report.as_dict(context.bands)})


# ---------------------------------------------------------------------------
# Zone / ReferencePrice ViewSets
# ---------------------------------------------------------------------------

class ZoneViewSet(viewsets.ModelViewSet):
    serializer_class = ZoneSerializer
    queryset = Zone.objects.all()
    filterset_fields = ['is_active', 'city']
    search_fields = ['name']
    permission_classes = [IsAdminOrReadOnly]


class ReferencePriceViewSet(viewsets.ModelViewSet):
    """
    Zone reference prices. Deletion is replaced by the ``deactivate`` action.
    """

    serializer_class = ReferencePriceSerializer
    queryset = ReferencePrice.objects.select_related('product', 'zone')
    filterset_fields = ['product', 'zone', 'is_active']
    ordering_fields = ['effective_from', 'created_at']
    permission_classes = [IsAdminOrReadOnly]
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def perform_create(self, serializer):
        data = serializer.validated_data
        try:
            serializer.instance = pricing_services.create_reference_price(
                data['product'],
                unit_price=data['reference_unit_price'],
                crate_price=data['reference_crate_price'],
                consign_price=data.get('reference_consign_price', 0),
                zone=data.get('zone'),
                effective_from=data.get('effective_from'),
                effective_to=data.get('effective_to'),
                actor=self.request.user,
            )
        except ValueError as e:
            raise _validation_error(e)

    def perform_update(self, serializer):
        changes = dict(serializer.validated_data)
        for locked_field in ('product', 'zone'):
            value = changes.pop(locked_field, None)
            if value is not None and value != getattr(serializer.instance, locked_field):
                raise ValidationError({locked_field: 'Ce champ ne peut pas etre modifie.'})
        try:
            serializer.instance = pricing_services.update_reference_price(
                serializer.instance,
                actor=self.request.user,
                **changes,
            )
        except ValueError as e:
            raise _validation_error(e)

    @action(detail=True, methods=['post'], url_path='deactivate')
    def deactivate(self, request, pk=None):
        reference = self.get_object()
        try:
            reference = pricing_services.deactivate_reference_price(reference, actor=request.user)
        except ValueError as e:
            raise _validation_error(e)
        return Response(ReferencePriceSerializer(reference).data)


# ---------------------------------------------------------------------------
# SupplierPriceGrid ViewSet
# ---------------------------------------------------------------------------

class SupplierPriceGridViewSet(viewsets.ModelViewSet):
    """
    Supplier price grids with their stock counters.

    Suppliers see and manage their own grids; administrators read them all.
    """

    serializer_class = SupplierPriceGridSerializer
    queryset = SupplierPriceGrid.objects.select_related('supplier', 'product', 'zone')
    filterset_fields = ['product', 'zone', 'is_active']
    search_fields = ['product__name']
    ordering_fields = ['crate_price', 'created_at', 'sold_quantity']
    permission_classes = [IsSupplierOrAdmin]
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.user.is_admin:
            return qs
        return qs.filter(supplier=self.request.user)

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        product = data.pop('product')
        try:
            serializer.instance = pricing_services.create_supplier_grid(
                self.request.user,
                product,
                actor=self.request.user,
                **data,
            )
        except ValueError as e:
            raise _validation_error(e)

    def perform_update(self, serializer):
        changes = dict(serializer.validated_data)
        for locked_field in ('product', 'zone'):
            value = changes.pop(locked_field, None)
            if value is not None and value != getattr(serializer.instance, locked_field):
                raise ValidationError({locked_field: 'Ce champ ne peut pas etre modifie.'})
        try:
            serializer.instance = pricing_services.update_supplier_grid(
                serializer.instance,
                actor=self.request.user,
                **changes,
            )
        except ValueError as e:
            raise _validation_error(e)

    @action(detail=True, methods=['post'], url_path='deactivate')
    def deactivate(self, request, pk=None):
        grid = self.get_object()
        try:
            grid = pricing_services.deactivate_supplier_grid(
                grid,
                actor=request.user,
                reason=request.data.get('reason', ''),
            )
        except ValueError as e:
            raise _validation_error(e)
        return Response(SupplierPriceGridSerializer(grid).data)

    @action(detail=True, methods=['post'], url_path='activate')
    def activate(self, request, pk=None):
        grid = self.get_object()
        try:
            grid = pricing_services.activate_supplier_grid(grid, actor=request.user)
        except ValueError as e:
            raise _validation_error(e)
        return Response(SupplierPriceGridSerializer(grid).data)

    @action(detail=True, methods=['post'], url_path='record-sale')
    def record_sale(self, request, pk=None):
        """Record a sale at this grid's price and increment the sold quantity."""
        grid = self.get_object()
        serializer = RecordSaleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            pricing_services.record_order_pricing(grid, **serializer.validated_data)
        except ValueError as e:
            raise _validation_error(e)
        grid.refresh_from_db()
        return Response(SupplierPriceGridSerializer(grid).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='reset-quantities')
    def reset_quantities(self, request):
        """Reset the sold quantity of all of the supplier's active grids."""
        if not request.user.is_supplier:
            raise PermissionDenied('Reserve aux fournisseurs.')
        count = pricing_services.reset_sold_quantities(request.user, actor=request.user)
        return Response({'reset': count})

    @action(detail=True, methods=['get'], url_path='history')
    def history(self, request, pk=None):
        grid = self.get_object()
        entries = grid.history.select_related('changed_by').order_by('-created_at')
        return Response(SupplierPriceGridHistorySerializer(entries, many=True).data)

    @action(detail=False, methods=['get'], url_path='export')
    def export(self, request):
        """Download the filtered grids as an .xlsx file."""
        qs = self.filter_queryset(self.get_queryset())
        return spreadsheets.export_supplier_grids_to_excel(qs)

    @action(
        detail=False,
        methods=['post'],
        url_path='import',
        parser_classes=[MultiPartParser, FormParser, JSONParser],
    )
    def import_grids(self, request):
        """Create or update the supplier's grids from an uploaded .xlsx file."""
        if not request.user.is_supplier:
            raise PermissionDenied('Reserve aux fournisseurs.')
        serializer = GridImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = spreadsheets.import_supplier_grids_from_excel(
            serializer.validated_data['file'],
            supplier=request.user,
            zone=serializer.validated_data['zone'],
            actor=request.user,
        )
        return Response(result)


# ---------------------------------------------------------------------------
# PriceAnalytics ViewSet (Read-Only)
# ---------------------------------------------------------------------------

class PriceAnalyticsViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only price analytics snapshots, with trend and market report views.
    """

    serializer_class = PriceAnalyticsSerializer
    queryset = PriceAnalytics.objects.select_related('product', 'zone')
    filterset_fields = ['product', 'zone', 'is_current']
    ordering_fields = ['period_start', 'avg_variance_percentage', 'calculated_at']
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['get'], url_path='trends')
    def trends(self, request):
        """Daily applied-price buckets for one product."""
        query = TrendQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        buckets = pricing_services.get_price_trends(
            data['product'],
            data['date_from'],
            data['date_to'],
            zone=data['zone'],
        )
        return Response([bucket.as_dict() for bucket in buckets])

    @action(detail=False, methods=['get'], url_path='report')
    def report(self, request):
        zone = None
        zone_id = request.query_params.get('zone')
        if zone_id:
            zone = get_object_or_404(Zone, pk=zone_id)
        return Response(pricing_services.generate_price_report(zone=zone).as_dict())

    @action(detail=False, methods=['post'], url_path='refresh', permission_classes=[IsAdminRole])
    def refresh(self, request):
        """Queue a recomputation of the current analytics."""
        serializer = AnalyticsRefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        job = refresh_price_analytics.delay(
            product_id=str(data['product']) if data['product'] else None,
            zone_id=str(data['zone']) if data['zone'] else None,
            period_days=data['period_days'],
        )
        return Response({'task_id': job.id}, status=status.HTTP_202_ACCEPTED)


# ---------------------------------------------------------------------------
# CreditCustomer ViewSet
# ---------------------------------------------------------------------------

class CreditCustomerViewSet(viewsets.ModelViewSet):
    """
    Credit customers of the user's organization ("carnet de credit").

    DELETE is a soft delete. Balances only change through the
    ``consumption`` and ``payment`` actions.
    """

    serializer_class = CreditCustomerSerializer
    queryset = CreditCustomer.objects.filter(is_active=True).select_related('organization')
    filterset_fields = ['status']
    search_fields = ['name', 'phone']
    ordering_fields = ['name', 'current_balance', 'last_payment_date', 'created_at']
    permission_classes = [IsOrganizationMember]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.is_admin:
            organization_id = self.request.query_params.get('organization')
            return qs.filter(organization_id=organization_id) if organization_id else qs
        return qs.filter(organization_id=user.organization_id)

    def _organization(self):
        user = self.request.user
        if not user.is_admin:
            return user.organization
        organization_id = (
            self.request.query_params.get('organization')
            or self.request.data.get('organization')
        )
        if not organization_id:
            raise ValidationError({'organization': 'Ce champ est requis.'})
        return get_object_or_404(Organization, pk=organization_id)

    def perform_create(self, serializer):
        data = serializer.validated_data
        try:
            serializer.instance = credit_services.create_customer(
                self._organization(),
                name=data['name'],
                phone=data.get('phone', ''),
                address=data.get('address', ''),
                notes=data.get('notes', ''),
                credit_limit=data.get('credit_limit', 0),
            )
        except ValueError as e:
            raise _validation_error(e)

    def perform_update(self, serializer):
        try:
            serializer.instance = credit_services.update_customer_info(
                serializer.instance,
                **serializer.validated_data,
            )
        except ValueError as e:
            raise _validation_error(e)

    def perform_destroy(self, instance):
        try:
            credit_services.delete_customer(instance, actor=self.request.user)
        except ValueError as e:
            raise _validation_error(e)

    def _customer_response(self, customer, transaction=None, status_code=status.HTTP_200_OK):
        customer.refresh_from_db()
        data = CreditCustomerSerializer(customer).data
        if transaction is not None:
            data['transaction'] = CreditTransactionSerializer(transaction).data
        return Response(data, status=status_code)

    @action(detail=True, methods=['post'], url_path='consumption')
    def consumption(self, request, pk=None):
        """Record products taken on credit."""
        customer = self.get_object()
        serializer = ConsumptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            entry = credit_services.record_consumption(
                customer,
                amount=data['amount'],
                items=data['items'],
                actor=request.user,
                notes=data['notes'],
                transaction_date=data['transaction_date'],
            )
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer, entry, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='payment')
    def payment(self, request, pk=None):
        """Record a repayment against the customer's balance."""
        customer = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            entry = credit_services.record_payment(
                customer,
                amount=data['amount'],
                payment_method=data['payment_method'],
                actor=request.user,
                notes=data['notes'],
                transaction_date=data['transaction_date'],
            )
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer, entry, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='freeze')
    def freeze(self, request, pk=None):
        customer = self.get_object()
        serializer = FreezeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            credit_services.freeze_customer(customer, actor=request.user, **serializer.validated_data)
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer)

    @action(detail=True, methods=['post'], url_path='unfreeze')
    def unfreeze(self, request, pk=None):
        customer = self.get_object()
        serializer = NewLimitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            credit_services.unfreeze_customer(
                customer,
                new_limit=serializer.validated_data['new_limit'],
                actor=request.user,
            )
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer)

    @action(detail=True, methods=['post'], url_path='disable')
    def disable(self, request, pk=None):
        customer = self.get_object()
        serializer = DisableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            credit_services.disable_customer(
                customer,
                reason=serializer.validated_data['reason'],
                actor=request.user,
            )
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer)

    @action(detail=True, methods=['post'], url_path='reactivate')
    def reactivate(self, request, pk=None):
        """Administrative: bring a disabled customer back to active."""
        if not request.user.is_admin:
            raise PermissionDenied('Reserve aux administrateurs.')
        customer = self.get_object()
        serializer = NewLimitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            credit_services.reactivate_customer(
                customer,
                new_limit=serializer.validated_data['new_limit'],
                actor=request.user,
            )
        except ValueError as e:
            raise _validation_error(e)
        return self._customer_response(customer)

    @action(detail=True, methods=['get'], url_path='transactions')
    def transactions(self, request, pk=None):
        customer = self.get_object()
        qs = (
            customer.transactions
            .select_related('customer', 'created_by')
            .prefetch_related('items')
            .order_by('-transaction_date', '-created_at')
        )
        paginator = TransactionHistoryPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(CreditTransactionSerializer(page, many=True).data)

    @action(detail=False, methods=['get'], url_path='alerts')
    def alerts(self, request):
        """Customers without payment for too long, most overdue first."""
        alerts = credit_services.get_credit_alerts(self._organization())
        return Response([alert.as_dict() for alert in alerts])

    @action(detail=False, methods=['get'], url_path='statistics')
    def statistics(self, request):
        return Response(credit_reports.get_credit_statistics(self._organization()))

    @action(detail=False, methods=['get'], url_path='monthly-stats')
    def monthly_stats(self, request):
        query = MonthlyStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(
            credit_reports.get_monthly_credit_stats(
                self._organization(),
                query.validated_data['year'],
                query.validated_data['month'],
            )
        )

    @action(detail=False, methods=['get'], url_path='annual-stats')
    def annual_stats(self, request):
        query = AnnualStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(
            credit_reports.get_annual_credit_stats(
                self._organization(),
                query.validated_data['year'],
            )
        )

    @action(detail=False, methods=['get'], url_path='export-csv')
    def export_csv(self, request):
        """Export the filtered credit customers to a CSV file."""
        qs = self.filter_queryset(self.get_queryset())
        columns = [
            ('name', 'Client'),
            ('phone', 'Telephone'),
            ('current_balance', 'Solde'),
            ('credit_limit', 'Plafond'),
            (lambda o: o.get_status_display(), 'Statut'),
            (
                lambda o: timezone.localtime(o.last_payment_date).strftime('%d/%m/%Y')
                if o.last_payment_date else '',
                'Dernier paiement',
            ),
        ]
        return queryset_to_csv_response(qs, columns, 'carnet_credit', dated=True)


# ---------------------------------------------------------------------------
# CreditTransaction ViewSet (Read-Only)
# ---------------------------------------------------------------------------

class CreditTransactionViewSet(mixins.ListModelMixin,
                               mixins.RetrieveModelMixin,
                               viewsets.GenericViewSet):
    """
    Read-only list of carnet transactions. Transactions are never edited.
    """

    serializer_class = CreditTransactionSerializer
    queryset = CreditTransaction.objects.select_related('customer', 'created_by').prefetch_related('items')
    filterset_fields = ['customer', 'transaction_type', 'payment_method']
    ordering_fields = ['transaction_date', 'amount']
    pagination_class = TransactionHistoryPagination
    permission_classes = [IsOrganizationMember]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.is_admin:
            return qs
        return qs.filter(organization_id=user.organization_id)
