from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'user', 'type', 'read', 'created_at']
    list_filter = ['type', 'read', 'tenant']
    search_fields = ['title', 'message', 'user__username']

    def get_queryset(self, request):
        return Notification.all_objects.select_related('tenant', 'user')
