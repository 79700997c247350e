from rest_framework import serializers

from .utils import get_current_tenant

_AMOUNT = serializers.DecimalField(max_digits=14, decimal_places=2)


def render_amount(value):
    """Render a computed amount the way model DecimalFields are rendered"""
    return _AMOUNT.to_representation(value)


class AmountMethodField(serializers.SerializerMethodField):
    """SerializerMethodField whose result is a money amount"""

    def to_representation(self, value):
        return render_amount(super().to_representation(value))


class TenantContextMixin:
    """Tenant lookup and cross-tenant reference checks for any serializer"""

    def _tenant(self):
        request = self.context.get('request')
        if request is not None and getattr(request, 'tenant', None) is not None:
            return request.tenant
        return self.context.get('tenant') or get_current_tenant()

    def validate_same_tenant(self, obj, field_name):
        """Reject references to rows owned by another tenant"""
        tenant = self._tenant()
        if obj is not None and tenant is not None and obj.tenant_id != tenant.pk:
            raise serializers.ValidationError(
                {field_name: f"{obj._meta.verbose_name.capitalize()} does not belong to your tenant."}
            )
        return obj


class TenantAwareSerializer(TenantContextMixin, serializers.ModelSerializer):
    """Base serializer that automatically handles tenant field"""

    def create(self, validated_data):
        """Create instance with tenant from request context"""
        # Security: Remove tenant if user tries to set it manually
        validated_data.pop('tenant', None)
        validated_data.pop('tenant_id', None)

        tenant = self._tenant()
        if tenant is None:
            raise serializers.ValidationError({
                "tenant": "Tenant context is missing. Cannot create resource."
            })

        validated_data['tenant'] = tenant
        return super().create(validated_data)

    def update(self, instance, validated_data):
        """Update instance, ensuring tenant cannot be changed"""
        validated_data.pop('tenant', None)
        validated_data.pop('tenant_id', None)

        return super().update(instance, validated_data)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        if 'tenant' in self.fields:
            self.fields['tenant'].read_only = True
