"""
Ledger Serializers
Invoices and transactions are written through payments.services, never
through ModelSerializer.save().
"""
from decimal import Decimal

from rest_framework import serializers

from clients.models import Client
from core.serializers import AmountMethodField, TenantAwareSerializer, TenantContextMixin
from products.models import Product
from products.serializers import NewProductSerializer

from .ledger import invoice_total_paid, outstanding_balance
from .models import Invoice, PaymentDetail, Transaction


class InvoiceSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True)
    client_phone = serializers.CharField(source='client.phone_number', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True, default=None)
    total_paid = AmountMethodField()
    remaining = AmountMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client', 'client_name', 'client_phone',
            'product', 'product_name', 'amount', 'status', 'notes',
            'total_paid', 'remaining', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def _total_paid(self, obj):
        # Annotated by the viewset queryset; single instances fall back to a query
        paid = getattr(obj, 'paid_total', None)
        return invoice_total_paid(obj) if paid is None else paid

    def get_total_paid(self, obj):
        return self._total_paid(obj)

    def get_remaining(self, obj):
        return outstanding_balance([obj.amount], [self._total_paid(obj)])


class TransactionSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True)
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True, default=None)

    class Meta:
        model = Transaction
        fields = [
            'id', 'client', 'client_name', 'invoice', 'invoice_number',
            'type', 'amount', 'date', 'notes', 'created_at',
        ]
        read_only_fields = fields


class SaleSerializer(TenantContextMixin, serializers.Serializer):
    """
    A sale: one invoice plus its sale transaction. `client` is taken from
    the URL on /api/clients/{id}/sales/.
    """
    client = serializers.PrimaryKeyRelatedField(queryset=Client.all_objects.all(), required=False)
    product = serializers.PrimaryKeyRelatedField(
        queryset=Product.all_objects.all(), required=False, allow_null=True
    )
    new_product = NewProductSerializer(required=False)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False
    )
    invoice_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    date = serializers.DateField(required=False)

    def validate(self, data):
        if self.context.get('client') is not None:
            data['client'] = self.context['client']
        if data.get('client') is None:
            raise serializers.ValidationError({'client': "This field is required."})

        self.validate_same_tenant(data['client'], 'client')
        self.validate_same_tenant(data.get('product'), 'product')

        if data.get('product') and data.get('new_product'):
            raise serializers.ValidationError("Choose an existing product or a new one, not both.")

        if 'amount' not in data:
            product = data.get('product')
            new_product = data.get('new_product')
            if product is not None:
                data['amount'] = product.price
            elif new_product:
                data['amount'] = new_product['price']
            else:
                raise serializers.ValidationError({'amount': "This field is required."})
        return data


class InvoiceUpdateSerializer(TenantContextMixin, serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    product = serializers.PrimaryKeyRelatedField(
        queryset=Product.all_objects.all(), required=False, allow_null=True
    )
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES, required=False)

    def validate_product(self, value):
        self.validate_same_tenant(value, 'product')
        return value


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentDetailSerializer(TenantAwareSerializer):
    class Meta:
        model = PaymentDetail
        fields = [
            'id', 'payment_type', 'name', 'paybill', 'account_no', 'till',
            'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, data):
        def value(field):
            if field in data:
                return data[field]
            return getattr(self.instance, field, '') if self.instance else ''

        payment_type = value('payment_type')
        if payment_type == PaymentDetail.TYPE_PAYBILL and not (value('paybill') and value('account_no')):
            raise serializers.ValidationError("A paybill entry needs a paybill number and an account number.")
        if payment_type == PaymentDetail.TYPE_TILL and not value('till'):
            raise serializers.ValidationError({'till': "A till entry needs a till number."})
        return data
