"""
Ledger Models - invoices, the immutable transaction ledger and payment instructions
"""
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from core.models import TenantAwareModel

POSITIVE_AMOUNT = [MinValueValidator(Decimal('0.01'))]


class Invoice(TenantAwareModel):
    STATUS_PENDING = 'pending'
    STATUS_PARTIAL = 'partial'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PARTIAL, 'Partially paid'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
    ]

    client = models.ForeignKey(
        'clients.Client',
        on_delete=models.CASCADE,
        related_name='invoices'
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoices'
    )
    invoice_number = models.CharField(max_length=50)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=POSITIVE_AMOUNT)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'invoice_number'],
                name='unique_invoice_number_per_tenant'
            )
        ]

    def __str__(self):
        return f"{self.invoice_number} - {self.amount} ({self.status})"


class Transaction(TenantAwareModel):
    """
    Ledger entry. Rows are only ever inserted by payments.services and
    removed together with their invoice or client.
    """
    TYPE_SALE = 'sale'
    TYPE_PAYMENT = 'payment'

    TYPE_CHOICES = [
        (TYPE_SALE, 'Sale'),
        (TYPE_PAYMENT, 'Payment'),
    ]

    client = models.ForeignKey(
        'clients.Client',
        on_delete=models.CASCADE,
        related_name='transactions'
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='transactions'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=POSITIVE_AMOUNT)
    date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['tenant', 'type', 'date']),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} for {self.client_id}"


class PaymentDetail(TenantAwareModel):
    """M-Pesa instructions shown to clients on the top-up screen"""
    TYPE_PAYBILL = 'mpesa_paybill'
    TYPE_TILL = 'mpesa_till'

    TYPE_CHOICES = [
        (TYPE_PAYBILL, 'M-Pesa Paybill'),
        (TYPE_TILL, 'M-Pesa Till'),
    ]

    payment_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    name = models.CharField(max_length=200)
    paybill = models.CharField(max_length=20, blank=True)
    account_no = models.CharField(max_length=50, blank=True)
    till = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.get_payment_type_display()})"

    def clean(self):
        if self.payment_type == self.TYPE_PAYBILL and not (self.paybill and self.account_no):
            raise ValidationError("A paybill entry needs a paybill number and an account number.")
        if self.payment_type == self.TYPE_TILL and not self.till:
            raise ValidationError("A till entry needs a till number.")
