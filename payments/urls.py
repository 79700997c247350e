"""
Ledger URLs
"""
from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    DashboardView,
    InvoiceViewSet,
    PaymentDetailViewSet,
    PortalView,
    TransactionViewSet,
)

router = SimpleRouter()
router.register(r'invoices', InvoiceViewSet, basename='invoice')
router.register(r'transactions', TransactionViewSet, basename='transaction')
router.register(r'payment-details', PaymentDetailViewSet, basename='payment-detail')

urlpatterns = [
    path('', include(router.urls)),
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
    path('portal/', PortalView.as_view(), name='portal'),
]
