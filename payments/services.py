"""
Ledger writes: sales, payments and invoice maintenance.

Every function takes a TenantContext and does all of its writes inside one
database transaction; notifications and SMS are dispatched after commit.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import serializers
from rest_framework.exceptions import NotFound

from clients.models import Client
from core.exceptions import OverpaymentRejected
from core.limits import enforce_plan_limit
from core.models import Tenant
from core.sms import send_transaction_sms
from core.tasks import dispatch
from notifications.models import Notification
from notifications.services import notify
from products.models import Product

from .ledger import (
    invoice_total_paid,
    recompute_invoice_status,
    refresh_client_balance,
)
from .models import Invoice, Transaction

logger = logging.getLogger(__name__)

OVERPAYMENT_ALLOW = 'allow'
OVERPAYMENT_REJECT = 'reject'
OVERPAYMENT_CLAMP = 'clamp'


@dataclass
class SaleResult:
    invoice: Invoice
    transaction: Transaction
    product: Optional[Product]
    balance: Decimal


@dataclass
class PaymentResult:
    invoice: Invoice
    transaction: Transaction
    total_paid: Decimal
    balance: Decimal
    requested_amount: Any = None


def overpayment_policy():
    policy = settings.LEDGER.get('OVERPAYMENT_POLICY', OVERPAYMENT_ALLOW)
    if policy not in (OVERPAYMENT_ALLOW, OVERPAYMENT_REJECT, OVERPAYMENT_CLAMP):
        raise ImproperlyConfigured(f"Unknown LEDGER['OVERPAYMENT_POLICY']: {policy!r}")
    return policy


def apply_overpayment_policy(amount, remaining, policy=None):
    """Return the amount to record against an invoice with `remaining` left"""
    policy = policy or overpayment_policy()

    if policy == OVERPAYMENT_ALLOW or amount <= remaining:
        return amount

    if policy == OVERPAYMENT_REJECT:
        raise OverpaymentRejected(
            f"Payment of {amount} exceeds the remaining balance of {max(remaining, 0)}."
        )

    if remaining <= 0:
        raise OverpaymentRejected("Invoice is already fully paid.")
    return remaining


def next_invoice_number(tenant, today=None):
    """INV-YYYYMMDD-NNNN, sequential per tenant and day"""
    today = today or timezone.localdate()
    prefix = f"INV-{today:%Y%m%d}-"
    existing = Invoice.objects.for_tenant(tenant).filter(invoice_number__startswith=prefix)

    sequence = existing.count() + 1
    number = f"{prefix}{sequence:04d}"
    while existing.filter(invoice_number=number).exists():
        sequence += 1
        number = f"{prefix}{sequence:04d}"
    return number


def _tenant_object(model, ctx, pk, field_name):
    """Fetch a row referenced by id; ids of other tenants are a validation error"""
    obj = model.objects.for_tenant(ctx.tenant).filter(pk=pk).first()
    if obj is None:
        raise serializers.ValidationError(
            {field_name: f"{model._meta.verbose_name.capitalize()} not found in your tenant."}
        )
    return obj


def record_sale(ctx, client_id, amount, product_id=None, new_product=None,
                invoice_number=None, notes='', date=None):
    """
    Create an invoice and its matching sale transaction (and optionally a
    new product) in one transaction, then refresh the client's balance.
    """
    tenant = ctx.tenant

    with transaction.atomic():
        client = _tenant_object(Client, ctx, client_id, 'client')

        product = None
        if new_product:
            enforce_plan_limit(tenant, 'products')
            product = Product.objects.create(tenant=tenant, **new_product)
            logger.info(f"Product '{product.name}' created with sale", extra={'tenant_id': str(tenant.pk)})
        elif product_id:
            product = _tenant_object(Product, ctx, product_id, 'product')

        # Sales of one tenant are numbered one at a time
        Tenant.objects.select_for_update().filter(pk=tenant.pk).first()

        enforce_plan_limit(tenant, 'invoices')

        if invoice_number:
            if Invoice.objects.for_tenant(tenant).filter(invoice_number=invoice_number).exists():
                raise serializers.ValidationError(
                    {'invoice_number': "An invoice with this number already exists."}
                )
        else:
            invoice_number = next_invoice_number(tenant)

        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    tenant=tenant,
                    client=client,
                    product=product,
                    invoice_number=invoice_number,
                    amount=amount,
                    status=Invoice.STATUS_PENDING,
                    notes=notes,
                )
        except IntegrityError:
            logger.warning(
                f"Invoice number {invoice_number} already taken",
                extra={'tenant_id': str(tenant.pk)}
            )
            raise serializers.ValidationError(
                {'invoice_number': "An invoice with this number already exists."}
            )

        sale = Transaction.objects.create(
            tenant=tenant,
            client=client,
            invoice=invoice,
            type=Transaction.TYPE_SALE,
            amount=amount,
            date=date or timezone.localdate(),
            notes=notes,
        )
        balance = refresh_client_balance(client)

    logger.info(
        f"Sale recorded: {invoice_number} for client {client.pk} amount {amount}",
        extra={'tenant_id': str(tenant.pk)}
    )

    dispatch(
        notify,
        tenant,
        ctx.user,
        "New Invoice Created",
        f"Invoice {invoice_number} created for {client.name} - KES {amount}",
        Notification.TYPE_INVOICE,
        f"/invoices/{invoice.pk}",
    )
    dispatch(
        send_transaction_sms,
        client,
        'sale',
        amount,
        invoice_number=invoice_number,
        product_name=product.name if product else None,
    )

    return SaleResult(invoice=invoice, transaction=sale, product=product, balance=balance)


def record_payment(ctx, invoice_id, amount, date=None, notes=''):
    """
    Record a payment against an invoice. The invoice row is locked so that
    concurrent payments on the same invoice see each other's totals.
    """
    tenant = ctx.tenant
    requested_amount = amount

    with transaction.atomic():
        invoice = (
            Invoice.objects.for_tenant(tenant)
            .select_for_update()
            .filter(pk=invoice_id)
            .first()
        )
        if invoice is None:
            raise NotFound("Invoice not found.")

        client = invoice.client
        total_paid = invoice_total_paid(invoice)
        amount = apply_overpayment_policy(amount, invoice.amount - total_paid)

        payment = Transaction.objects.create(
            tenant=tenant,
            client=client,
            invoice=invoice,
            type=Transaction.TYPE_PAYMENT,
            amount=amount,
            date=date or timezone.localdate(),
            notes=notes,
        )
        total_paid += amount
        recompute_invoice_status(invoice, total_paid)
        balance = refresh_client_balance(client)

    logger.info(
        f"Payment recorded: {amount} on {invoice.invoice_number} ({invoice.status})",
        extra={'tenant_id': str(tenant.pk)}
    )
    if amount != requested_amount:
        logger.info(f"Payment of {requested_amount} clamped to {amount}", extra={'tenant_id': str(tenant.pk)})

    dispatch(
        notify,
        tenant,
        ctx.user,
        "Payment Received",
        f"Payment of KES {amount} received from {client.name}",
        Notification.TYPE_PAYMENT,
        f"/invoices/{invoice.pk}",
    )
    dispatch(
        send_transaction_sms,
        client,
        'payment',
        amount,
        invoice_number=invoice.invoice_number,
        new_balance=balance,
    )

    return PaymentResult(
        invoice=invoice,
        transaction=payment,
        total_paid=total_paid,
        balance=balance,
        requested_amount=requested_amount,
    )


def top_up_invoice(client):
    """The invoice a client top-up pays: oldest unpaid, else oldest"""
    invoices = Invoice.objects.for_tenant(client.tenant).filter(client=client).order_by('created_at', 'pk')
    invoice = invoices.exclude(status=Invoice.STATUS_PAID).first() or invoices.first()
    if invoice is None:
        raise serializers.ValidationError({'invoice': "This client has no invoice to pay."})
    return invoice


def update_invoice(ctx, invoice_id, **changes):
    """
    Apply amount/notes/product/status changes. Status may only be set to
    'overdue', and only while nothing has been paid.
    """
    with transaction.atomic():
        invoice = (
            Invoice.objects.for_tenant(ctx.tenant)
            .select_for_update()
            .filter(pk=invoice_id)
            .first()
        )
        if invoice is None:
            raise NotFound("Invoice not found.")

        total_paid = invoice_total_paid(invoice)
        fields = []

        if 'product' in changes:
            product = changes['product']
            if product is not None and product.tenant_id != ctx.tenant.pk:
                raise serializers.ValidationError({'product': "Product does not belong to your tenant."})
            invoice.product = product
            fields.append('product')

        if 'notes' in changes:
            invoice.notes = changes['notes']
            fields.append('notes')

        amount_changed = 'amount' in changes and changes['amount'] != invoice.amount
        if amount_changed:
            invoice.amount = changes['amount']
            fields.append('amount')

        status = changes.get('status')
        if status and status != invoice.status:
            if status != Invoice.STATUS_OVERDUE:
                raise serializers.ValidationError(
                    {'status': "Status is derived from payments; only 'overdue' can be set."}
                )
            if total_paid > 0:
                raise serializers.ValidationError(
                    {'status': "Only invoices without payments can be marked overdue."}
                )
            invoice.status = status
            fields.append('status')

        if fields:
            invoice.save(update_fields=fields + ['updated_at'])

        if amount_changed:
            recompute_invoice_status(invoice, total_paid)
            refresh_client_balance(invoice.client)

    logger.info(f"Invoice {invoice.invoice_number} updated: {', '.join(fields) or 'no changes'}")
    return invoice


def delete_invoice(ctx, invoice_id):
    """Delete an invoice with its transactions and refresh the client balance"""
    with transaction.atomic():
        invoice = (
            Invoice.objects.for_tenant(ctx.tenant)
            .select_for_update()
            .filter(pk=invoice_id)
            .first()
        )
        if invoice is None:
            raise NotFound("Invoice not found.")

        client = invoice.client
        number = invoice.invoice_number
        invoice.delete()
        balance = refresh_client_balance(client)

    logger.info(f"Invoice {number} deleted", extra={'tenant_id': str(ctx.tenant.pk)})
    return balance
