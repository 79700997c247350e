"""
Core Admin - Tenant Management
"""
from django.contrib import admin

from .models import Tenant, TenantFeatureFlag, TenantSubscription


class TenantSubscriptionInline(admin.StackedInline):
    model = TenantSubscription
    can_delete = False
    extra = 0
    fields = [
        'plan', 'status', 'max_users', 'max_clients',
        'max_invoices_per_month', 'max_products', 'expires_at'
    ]


class TenantFeatureFlagInline(admin.TabularInline):
    model = TenantFeatureFlag
    extra = 0
    fields = ['flag_name', 'is_enabled']


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """
    Admin interface for managing tenants
    """
    list_display = [
        'name', 'business_name', 'phone_number',
        'status', 'deleted_at', 'created_at'
    ]
    list_filter = ['status', 'created_at']
    search_fields = ['name', 'domain', 'business_name', 'phone_number', 'email']
    inlines = [TenantSubscriptionInline, TenantFeatureFlagInline]

    fieldsets = (
        ('Tenant Identification', {
            'fields': ('name', 'domain')
        }),
        ('Business Information', {
            'fields': ('business_name', 'email', 'phone_number')
        }),
        ('Lifecycle', {
            'fields': ('status', 'deleted_at', 'last_activity_at')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_activity_at']

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        obj.invalidate_cache()
