from rest_framework import serializers

from accounts.serializers import PhoneNumberField
from core.serializers import AmountMethodField, TenantAwareSerializer
from payments.ledger import client_totals, outstanding_balance

from .models import Client


class ClientSerializer(TenantAwareSerializer):
    phone_number = PhoneNumberField()
    total_invoiced = AmountMethodField()
    total_paid = AmountMethodField()
    outstanding_balance = AmountMethodField()
    has_login = serializers.SerializerMethodField()
    create_login = serializers.BooleanField(write_only=True, required=False, default=True)

    class Meta:
        model = Client
        fields = [
            'id', 'name', 'phone_number', 'email', 'status',
            'total_balance', 'total_invoiced', 'total_paid', 'outstanding_balance',
            'has_login', 'create_login', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'total_balance', 'created_at', 'updated_at']

    def _totals(self, obj):
        # Client.objects.with_ledger_totals() annotates both sums
        if hasattr(obj, 'total_invoiced') and hasattr(obj, 'total_paid'):
            return obj.total_invoiced, obj.total_paid
        cache = self.context.setdefault('_client_totals', {})
        if obj.pk not in cache:
            cache[obj.pk] = client_totals(obj)
        return cache[obj.pk]

    def get_total_invoiced(self, obj):
        return self._totals(obj)[0]

    def get_total_paid(self, obj):
        return self._totals(obj)[1]

    def get_outstanding_balance(self, obj):
        invoiced, paid = self._totals(obj)
        return outstanding_balance([invoiced], [paid])

    def get_has_login(self, obj):
        return obj.user_id is not None

    def validate_phone_number(self, value):
        tenant = self._tenant()
        duplicates = Client.objects.for_tenant(tenant).filter(phone_number=value)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError("A client with this phone number already exists.")
        return value

    def update(self, instance, validated_data):
        validated_data.pop('create_login', None)
        return super().update(instance, validated_data)

