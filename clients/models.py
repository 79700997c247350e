"""
Client Models - the people a business sells to on credit
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import DecimalField, OuterRef, Subquery, Sum, Value
from django.db.models.functions import Coalesce

from core.models import TenantAwareModel, TenantQuerySet


def _ledger_sum(queryset):
    """Correlated SUM(amount) of `queryset` grouped by client"""
    return Coalesce(
        Subquery(
            queryset.filter(client=OuterRef('pk'))
            .order_by()
            .values('client')
            .annotate(total=Sum('amount'))
            .values('total')[:1],
            output_field=DecimalField(max_digits=14, decimal_places=2),
        ),
        Value(Decimal('0.00')),
        output_field=DecimalField(max_digits=14, decimal_places=2),
    )


class ClientQuerySet(TenantQuerySet):
    def with_ledger_totals(self):
        """Annotate total_invoiced and total_paid (subqueries, no row fan-out)"""
        from payments.models import Invoice, Transaction

        return self.annotate(
            total_invoiced=_ledger_sum(Invoice.all_objects.all()),
            total_paid=_ledger_sum(Transaction.all_objects.filter(type=Transaction.TYPE_PAYMENT)),
        )


class Client(TenantAwareModel):
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    name = models.CharField(max_length=200)
    phone_number = models.CharField(max_length=20, db_index=True)
    email = models.EmailField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='client_records',
        help_text="Login identity provisioned for the client portal"
    )

    # Cache of the ledger, rewritten by payments.ledger.refresh_client_balance
    total_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        editable=False
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClientQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'phone_number'],
                name='unique_client_phone_per_tenant'
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.phone_number})"
