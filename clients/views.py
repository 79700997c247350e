import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.context import TenantContext
from core.permissions import IsTenantStaff
from core.serializers import render_amount
from payments.ledger import outstanding_balance
from payments.models import Invoice, Transaction
from payments.serializers import (
    InvoiceSerializer,
    PaymentSerializer,
    SaleSerializer,
    TransactionSerializer,
)
from payments.services import record_payment, record_sale, top_up_invoice

from .models import Client
from .serializers import ClientSerializer
from .services import create_client

logger = logging.getLogger(__name__)


class ClientViewSet(viewsets.ModelViewSet):
    """
    Clients of the current tenant, with ledger totals.

    POST creates the portal login too unless create_login is false; the
    generated PIN is only ever returned in that response.
    """
    serializer_class = ClientSerializer
    permission_classes = [IsTenantStaff]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status']
    search_fields = ['name', 'phone_number']
    ordering_fields = ['name', 'created_at', 'total_balance']
    ordering = ['-created_at']

    def get_queryset(self):
        return Client.objects.for_tenant(self.request.tenant).with_ledger_totals()

    def _reload(self, client):
        return self.get_queryset().get(pk=client.pk)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        client, pin = create_client(
            TenantContext.from_request(request),
            name=data['name'],
            phone_number=data['phone_number'],
            email=data.get('email', ''),
            status=data.get('status', Client.STATUS_ACTIVE),
            create_login=data.get('create_login', True),
        )

        body = self.get_serializer(self._reload(client)).data
        if pin:
            body['pin'] = pin
        return Response(body, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        logger.info(
            f"Deleting client {instance.pk} with its invoices and transactions",
            extra={'tenant_id': str(self.request.tenant.pk)}
        )
        instance.delete()

    @action(detail=True, methods=['get'])
    def statement(self, request, pk=None):
        """
        GET /api/clients/{id}/statement/
        Invoices (with paid amounts) and every ledger entry of the client
        """
        client = self.get_object()
        invoices = Invoice.objects.for_tenant(request.tenant).filter(client=client).select_related('product', 'client')
        transactions = Transaction.objects.for_tenant(request.tenant).filter(client=client).select_related('invoice', 'client')
        payments = transactions.filter(type=Transaction.TYPE_PAYMENT)
        totals = self.get_serializer(client).data

        return Response({
            'client': totals,
            'invoices': InvoiceSerializer(invoices, many=True).data,
            'transactions': TransactionSerializer(transactions, many=True).data,
            'outstanding_balance': render_amount(outstanding_balance(invoices, payments)),
        })

    @action(detail=True, methods=['post'], url_path='top-up')
    def top_up(self, request, pk=None):
        """
        POST /api/clients/{id}/top-up/
        Pays the client's oldest unpaid invoice
        """
        client = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        invoice = top_up_invoice(client)
        result = record_payment(
            TenantContext.from_request(request),
            invoice.pk,
            serializer.validated_data['amount'],
            date=serializer.validated_data.get('date'),
            notes=serializer.validated_data.get('notes', ''),
        )

        return Response({
            'invoice': InvoiceSerializer(result.invoice).data,
            'transaction': TransactionSerializer(result.transaction).data,
            'outstanding_balance': render_amount(result.balance),
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def sales(self, request, pk=None):
        """
        POST /api/clients/{id}/sales/
        Records a sale (invoice + sale transaction) for this client
        """
        client = self.get_object()
        serializer = SaleSerializer(data=request.data, context={'request': request, 'client': client})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = record_sale(
            TenantContext.from_request(request),
            client.pk,
            data['amount'],
            product_id=data['product'].pk if data.get('product') else None,
            new_product=data.get('new_product'),
            invoice_number=data.get('invoice_number') or None,
            notes=data.get('notes', ''),
            date=data.get('date'),
        )

        return Response({
            'invoice': InvoiceSerializer(result.invoice).data,
            'transaction': TransactionSerializer(result.transaction).data,
            'outstanding_balance': render_amount(result.balance),
        }, status=status.HTTP_201_CREATED)
