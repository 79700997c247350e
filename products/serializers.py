from rest_framework import serializers

from core.serializers import TenantAwareSerializer

from .models import Product


class ProductSerializer(TenantAwareSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'price', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class NewProductSerializer(serializers.ModelSerializer):
    """Product created inline with a sale"""

    class Meta:
        model = Product
        fields = ['name', 'description', 'price']
