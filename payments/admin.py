"""
Ledger admin. Transactions are read-only here as everywhere else.
"""
from django.contrib import admin

from .models import Invoice, PaymentDetail, Transaction


class TransactionInline(admin.TabularInline):
    model = Transaction
    extra = 0
    can_delete = False
    fields = ['type', 'amount', 'date', 'notes', 'created_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'tenant', 'client', 'amount', 'status', 'created_at']
    list_filter = ['status', 'tenant', 'created_at']
    search_fields = ['invoice_number', 'client__name', 'client__phone_number']
    readonly_fields = ['status', 'created_at', 'updated_at']
    raw_id_fields = ['client', 'product']
    inlines = [TransactionInline]

    def get_queryset(self, request):
        return Invoice.all_objects.select_related('tenant', 'client')


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['client', 'tenant', 'type', 'amount', 'date', 'invoice']
    list_filter = ['type', 'tenant', 'date']
    search_fields = ['client__name', 'invoice__invoice_number']

    def get_queryset(self, request):
        return Transaction.all_objects.select_related('tenant', 'client', 'invoice')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(PaymentDetail)
class PaymentDetailAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'payment_type', 'is_active']
    list_filter = ['payment_type', 'is_active', 'tenant']

    def get_queryset(self, request):
        return PaymentDetail.all_objects.select_related('tenant')
