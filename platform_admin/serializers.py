from rest_framework import serializers

from core.models import Tenant, TenantFeatureFlag, TenantSubscription

from .models import AuditLog, SuperAdmin


class SubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantSubscription
        fields = [
            'plan', 'status', 'max_users', 'max_clients',
            'max_invoices_per_month', 'max_products', 'started_at', 'expires_at',
        ]


class TenantSummarySerializer(serializers.ModelSerializer):
    plan = serializers.CharField(source='subscription_or_default.plan', read_only=True)
    client_count = serializers.IntegerField(read_only=True, default=0)
    user_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Tenant
        fields = [
            'id', 'name', 'business_name', 'phone_number', 'email', 'domain',
            'status', 'plan', 'client_count', 'user_count',
            'created_at', 'updated_at', 'deleted_at', 'last_activity_at',
        ]


class FeatureFlagSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantFeatureFlag
        fields = ['id', 'flag_name', 'is_enabled', 'metadata', 'created_at', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'admin', 'admin_email', 'action', 'resource_type', 'resource_id',
            'tenant_id', 'details', 'ip_address', 'user_agent', 'created_at',
        ]


class SuperAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = SuperAdmin
        fields = ['id', 'email', 'full_name', 'role', 'is_active', 'last_login_at', 'created_at']
