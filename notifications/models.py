"""
In-app notifications shown to tenant staff
"""
from django.conf import settings
from django.db import models

from core.models import TenantAwareModel


class Notification(TenantAwareModel):
    TYPE_INVOICE = 'invoice'
    TYPE_PAYMENT = 'payment'
    TYPE_CLIENT = 'client'
    TYPE_SYSTEM = 'system'

    TYPE_CHOICES = [
        (TYPE_INVOICE, 'Invoice'),
        (TYPE_PAYMENT, 'Payment'),
        (TYPE_CLIENT, 'Client'),
        (TYPE_SYSTEM, 'System'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    title = models.CharField(max_length=200)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_SYSTEM)
    link = models.CharField(max_length=255, blank=True)
    read = models.BooleanField(default=False, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read']),
        ]

    def __str__(self):
        return f"{self.title} -> {self.user_id}"
