"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1 import views as v1_views

router = DefaultRouter()
router.register(r'products', v1_views.ProductViewSet)
router.register(r'zones', v1_views.ZoneViewSet)
router.register(r'reference-prices', v1_views.ReferencePriceViewSet)
router.register(r'supplier-price-grids', v1_views.SupplierPriceGridViewSet)
router.register(r'price-analytics', v1_views.PriceAnalyticsViewSet)
router.register(r'credit-customers', v1_views.CreditCustomerViewSet)
router.register(r'credit-transactions', v1_views.CreditTransactionViewSet)


app_name = 'api'
urlpatterns = [
    path('', include(router.urls)),

    # Auth endpoints
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', v1_views.MeAPIView.as_view(), name='auth-me'),
]
