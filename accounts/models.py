"""
Account Models - login profiles and role assignments
"""
from django.conf import settings
from django.db import models

from core.models import TenantAwareModel


class Profile(TenantAwareModel):
    """
    Links a login identity to a tenant. The same phone number may have one
    profile per tenant.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profiles'
    )
    full_name = models.CharField(max_length=200)
    phone_number = models.CharField(max_length=20, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'tenant'],
                name='unique_profile_per_tenant'
            )
        ]

    def __str__(self):
        return f"{self.full_name} ({self.tenant.name})"


class UserRole(models.Model):
    ROLE_ADMIN = 'admin'
    ROLE_USER = 'user'
    ROLE_CLIENT = 'client'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_USER, 'User'),
        (ROLE_CLIENT, 'Client'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='roles'
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_user_role')
        ]

    def __str__(self):
        return f"{self.user.username}: {self.role}"

    @classmethod
    def primary_role(cls, user):
        """admin > user > client, or None"""
        roles = set(cls.objects.filter(user=user).values_list('role', flat=True))
        for role in (cls.ROLE_ADMIN, cls.ROLE_USER, cls.ROLE_CLIENT):
            if role in roles:
                return role
        return None
