from django.contrib import admin

from .models import AuditLog, SuperAdmin


@admin.register(SuperAdmin)
class SuperAdminAdmin(admin.ModelAdmin):
    list_display = ['email', 'full_name', 'role', 'is_active', 'last_login_at']
    list_filter = ['role', 'is_active']
    search_fields = ['email', 'full_name']
    readonly_fields = ['last_login_at', 'created_at', 'updated_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'admin_email', 'action', 'resource_type', 'resource_id', 'tenant_id']
    list_filter = ['action', 'resource_type']
    search_fields = ['admin_email', 'resource_id']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
