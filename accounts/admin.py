from django.contrib import admin

from .models import Profile, UserRole


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'phone_number', 'tenant', 'user', 'created_at']
    list_filter = ['tenant']
    search_fields = ['full_name', 'phone_number', 'user__username']
    readonly_fields = ['created_at', 'updated_at']

    def get_queryset(self, request):
        return Profile.all_objects.select_related('tenant', 'user')


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'created_at']
    list_filter = ['role']
    search_fields = ['user__username']
