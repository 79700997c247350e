import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, viewsets

from core.limits import enforce_plan_limit
from core.permissions import IsTenantStaff

from .models import Product
from .serializers import ProductSerializer

logger = logging.getLogger(__name__)


class ProductViewSet(viewsets.ModelViewSet):
    """
    Tenant product catalogue
    """
    serializer_class = ProductSerializer
    permission_classes = [IsTenantStaff]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'description']
    ordering_fields = ['price', 'name', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Product.objects.for_tenant(self.request.tenant)

    def perform_create(self, serializer):
        enforce_plan_limit(self.request.tenant, 'products')
        product = serializer.save()
        logger.info(f"Product created: {product.name}", extra={'tenant_id': str(self.request.tenant.pk)})
