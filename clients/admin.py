from django.contrib import admin

from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone_number', 'tenant', 'status', 'total_balance', 'created_at']
    list_filter = ['status', 'tenant']
    search_fields = ['name', 'phone_number', 'email']
    readonly_fields = ['total_balance', 'created_at', 'updated_at']
    raw_id_fields = ['user']

    def get_queryset(self, request):
        return Client.all_objects.select_related('tenant')
