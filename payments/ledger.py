"""
Ledger arithmetic.

outstanding_balance() is the only place a balance is computed; the client
list, client detail, portal, top-up response, dashboard and SMS text all
go through it. Invoice status is always derived from the payments
recorded against the invoice.
"""
import logging
from decimal import Decimal

from django.db.models import Sum

from .models import Invoice, Transaction

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _to_decimal(item):
    value = getattr(item, 'amount', item)
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def total(items):
    """Sum amounts, or objects carrying an `amount`"""
    return sum((_to_decimal(item) for item in items), ZERO)


def outstanding_balance(invoices, payments):
    """sum(invoice amounts) - sum(payment amounts); negative means credit"""
    return total(invoices) - total(payments)


def derive_invoice_status(amount, total_paid):
    amount = _to_decimal(amount)
    total_paid = _to_decimal(total_paid)
    if total_paid >= amount:
        return Invoice.STATUS_PAID
    if total_paid > 0:
        return Invoice.STATUS_PARTIAL
    return Invoice.STATUS_PENDING


def _sum_amount(queryset):
    return queryset.aggregate(total=Sum('amount'))['total'] or ZERO


def invoice_total_paid(invoice):
    return _sum_amount(
        Transaction.all_objects.filter(invoice=invoice, type=Transaction.TYPE_PAYMENT)
    )


def recompute_invoice_status(invoice, total_paid=None):
    """Write the derived status; a manual 'overdue' is replaced here"""
    if total_paid is None:
        total_paid = invoice_total_paid(invoice)

    status = derive_invoice_status(invoice.amount, total_paid)
    if status != invoice.status:
        logger.debug(f"Invoice {invoice.invoice_number}: {invoice.status} -> {status}")
        invoice.status = status
        invoice.save(update_fields=['status', 'updated_at'])
    return invoice


def client_totals(client):
    """(total invoiced, total paid) for one client"""
    invoiced = _sum_amount(Invoice.all_objects.filter(client=client))
    paid = _sum_amount(
        Transaction.all_objects.filter(client=client, type=Transaction.TYPE_PAYMENT)
    )
    return invoiced, paid


def client_outstanding_balance(client):
    invoiced, paid = client_totals(client)
    return outstanding_balance([invoiced], [paid])


def refresh_client_balance(client):
    """Rewrite the cached Client.total_balance from the ledger"""
    balance = client_outstanding_balance(client)
    if client.total_balance != balance:
        client.total_balance = balance
        client.save(update_fields=['total_balance', 'updated_at'])
    return balance


def tenant_totals(tenant):
    """(total invoiced, total paid, outstanding) across a tenant"""
    invoiced = _sum_amount(Invoice.objects.for_tenant(tenant))
    paid = _sum_amount(
        Transaction.objects.for_tenant(tenant).filter(type=Transaction.TYPE_PAYMENT)
    )
    return invoiced, paid, outstanding_balance([invoiced], [paid])
