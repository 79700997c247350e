"""
Platform operators and the audit trail of what they did
"""
import uuid

from django.conf import settings
from django.db import models


class SuperAdmin(models.Model):
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_SUPPORT_ADMIN = 'support_admin'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super admin'),
        (ROLE_SUPPORT_ADMIN, 'Support admin'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='super_admin'
    )
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=200)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_SUPPORT_ADMIN)
    is_active = models.BooleanField(default=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def can_modify(self):
        return self.role == self.ROLE_SUPER_ADMIN


class AuditLog(models.Model):
    """Append-only. tenant_id is kept as a plain value so logs outlive tenants."""
    admin = models.ForeignKey(
        SuperAdmin,
        on_delete=models.SET_NULL,
        null=True,
        related_name='audit_logs'
    )
    admin_email = models.EmailField()
    action = models.CharField(max_length=100, db_index=True)
    resource_type = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=100, blank=True)
    tenant_id = models.UUIDField(null=True, blank=True, db_index=True)
    details = models.JSONField(null=True, blank=True)
    ip_address = models.CharField(max_length=64, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.admin_email}: {self.action} {self.resource_type} {self.resource_id}"
