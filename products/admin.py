"""
Product admin. Platform staff see every tenant's rows through all_objects.
"""
from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'price', 'created_at']
    list_filter = ['tenant', 'created_at']
    search_fields = ['name', 'description', 'tenant__name']
    readonly_fields = ['created_at', 'updated_at']

    def get_queryset(self, request):
        return Product.all_objects.select_related('tenant')
