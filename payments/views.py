"""
Ledger Views - invoices, transactions, payment instructions, dashboard and
the client portal. The backend is the source of truth for every balance.
"""
import logging
from datetime import date

from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView

from clients.models import Client
from clients.serializers import ClientSerializer
from core.context import TenantContext
from core.permissions import IsTenantClient, IsTenantMember, IsTenantStaff
from core.serializers import render_amount

from .ledger import ZERO, outstanding_balance, tenant_totals
from .models import Invoice, PaymentDetail, Transaction
from .serializers import (
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    PaymentDetailSerializer,
    PaymentSerializer,
    SaleSerializer,
    TransactionSerializer,
)
from .services import delete_invoice, record_payment, record_sale, update_invoice

logger = logging.getLogger(__name__)


def _paid_total():
    return Coalesce(
        Sum('transactions__amount', filter=Q(transactions__type=Transaction.TYPE_PAYMENT)),
        Value(ZERO),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


class InvoiceViewSet(viewsets.ModelViewSet):
    """
    Invoices of the current tenant. Creating an invoice records a sale;
    payments are posted to /api/invoices/{id}/payments/.
    """
    serializer_class = InvoiceSerializer
    permission_classes = [IsTenantStaff]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['client', 'status']
    search_fields = ['invoice_number', 'client__name', 'client__phone_number']
    ordering_fields = ['created_at', 'amount', 'invoice_number']
    ordering = ['-created_at']

    def get_queryset(self):
        return (
            Invoice.objects.for_tenant(self.request.tenant)
            .select_related('client', 'product')
            .annotate(paid_total=_paid_total())
        )

    def _respond(self, invoice, status_code=status.HTTP_200_OK):
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(self.get_serializer(invoice).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = SaleSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = record_sale(
            TenantContext.from_request(request),
            data['client'].pk,
            data['amount'],
            product_id=data['product'].pk if data.get('product') else None,
            new_product=data.get('new_product'),
            invoice_number=data.get('invoice_number') or None,
            notes=data.get('notes', ''),
            date=data.get('date'),
        )
        return self._respond(result.invoice, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        invoice = self.get_object()
        serializer = InvoiceUpdateSerializer(
            data=request.data,
            partial=kwargs.get('partial', False),
            context={'request': request},
        )
        serializer.is_valid(raise_exception=True)

        invoice = update_invoice(TenantContext.from_request(request), invoice.pk, **serializer.validated_data)
        return self._respond(invoice)

    def destroy(self, request, *args, **kwargs):
        invoice = self.get_object()
        delete_invoice(TenantContext.from_request(request), invoice.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def payments(self, request, pk=None):
        """
        POST /api/invoices/{id}/payments/
        Records a payment and returns the invoice with its new status
        """
        invoice = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = record_payment(
            TenantContext.from_request(request),
            invoice.pk,
            serializer.validated_data['amount'],
            date=serializer.validated_data.get('date'),
            notes=serializer.validated_data.get('notes', ''),
        )

        invoice = self.get_queryset().get(pk=result.invoice.pk)
        return Response({
            'invoice': self.get_serializer(invoice).data,
            'transaction': TransactionSerializer(result.transaction).data,
            'outstanding_balance': render_amount(result.balance),
        }, status=status.HTTP_201_CREATED)


class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """Ledger entries; written only by the sale and payment services"""
    serializer_class = TransactionSerializer
    permission_classes = [IsTenantStaff]

    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['client', 'invoice', 'type']
    ordering_fields = ['date', 'created_at', 'amount']
    ordering = ['-date', '-created_at']

    def get_queryset(self):
        return Transaction.objects.for_tenant(self.request.tenant).select_related('client', 'invoice')


class PaymentDetailViewSet(viewsets.ModelViewSet):
    serializer_class = PaymentDetailSerializer
    permission_classes = [IsTenantStaff]

    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['payment_type', 'is_active']

    def get_queryset(self):
        return PaymentDetail.objects.for_tenant(self.request.tenant)

    def get_permissions(self):
        if self.action == 'active':
            return [IsTenantMember()]
        return super().get_permissions()

    @action(detail=False, methods=['get'])
    def active(self, request):
        """
        GET /api/payment-details/active/
        Payment instructions clients see on the top-up screen
        """
        details = self.get_queryset().filter(is_active=True)
        return Response(self.get_serializer(details, many=True).data)


class DashboardView(APIView):
    """
    GET /api/dashboard/
    Tenant totals, invoice counts by status, six months of sales vs payments
    """
    permission_classes = [IsTenantStaff]

    def get(self, request):
        tenant = request.tenant
        invoiced, paid, outstanding = tenant_totals(tenant)

        status_counts = {value: 0 for value, _ in Invoice.STATUS_CHOICES}
        for row in Invoice.objects.for_tenant(tenant).order_by().values('status').annotate(count=Count('id')):
            status_counts[row['status']] = row['count']

        recent = (
            Invoice.objects.for_tenant(tenant)
            .select_related('client', 'product')
            .annotate(paid_total=_paid_total())
            .order_by('-created_at')[:5]
        )

        return Response({
            'total_clients': Client.objects.for_tenant(tenant).count(),
            'active_clients': Client.objects.for_tenant(tenant).filter(status=Client.STATUS_ACTIVE).count(),
            'total_invoiced': render_amount(invoiced),
            'total_paid': render_amount(paid),
            'outstanding_balance': render_amount(outstanding),
            'invoices_by_status': status_counts,
            'monthly': self._monthly_totals(tenant),
            'recent_invoices': InvoiceSerializer(recent, many=True).data,
        })

    def _monthly_totals(self, tenant, months=6):
        today = timezone.localdate()
        month_starts = []
        year, month = today.year, today.month
        for _ in range(months):
            month_starts.append(date(year, month, 1))
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        month_starts.reverse()

        rows = (
            Transaction.objects.for_tenant(tenant)
            .filter(date__gte=month_starts[0])
            .annotate(month=TruncMonth('date'))
            .order_by()
            .values('month', 'type')
            .annotate(total=Sum('amount'))
        )
        totals = {}
        for row in rows:
            month_start = row['month']
            if hasattr(month_start, 'date'):
                month_start = month_start.date()
            totals[(month_start, row['type'])] = row['total']

        return [
            {
                'month': start.strftime('%Y-%m'),
                'sales': render_amount(totals.get((start, Transaction.TYPE_SALE), ZERO)),
                'payments': render_amount(totals.get((start, Transaction.TYPE_PAYMENT), ZERO)),
            }
            for start in month_starts
        ]


class PortalView(APIView):
    """
    GET /api/portal/
    The logged-in client's own record, balance, invoices and payment options
    """
    permission_classes = [IsTenantClient]

    def get(self, request):
        tenant = request.tenant
        clients = Client.objects.for_tenant(tenant).with_ledger_totals()
        client = clients.filter(user=request.user).first()
        if client is None:
            profile = request.user.profiles.filter(tenant=tenant).first()
            if profile is not None:
                client = clients.filter(phone_number=profile.phone_number).first()
        if client is None:
            raise NotFound("No client record is linked to this account.")

        invoices = (
            Invoice.objects.for_tenant(tenant).filter(client=client)
            .select_related('client', 'product')
            .annotate(paid_total=_paid_total())
        )
        transactions = Transaction.objects.for_tenant(tenant).filter(client=client).select_related('client', 'invoice')
        payments = [t for t in transactions if t.type == Transaction.TYPE_PAYMENT]

        return Response({
            'client': ClientSerializer(client, context={'request': request}).data,
            'business_name': tenant.business_name,
            'outstanding_balance': render_amount(outstanding_balance(invoices, payments)),
            'invoices': InvoiceSerializer(invoices, many=True).data,
            'transactions': TransactionSerializer(transactions, many=True).data,
            'payment_details': PaymentDetailSerializer(
                PaymentDetail.objects.for_tenant(tenant).filter(is_active=True), many=True
            ).data,
        })
