"""
Core Models - Base classes for multi-tenant system
"""
import uuid

from django.conf import settings
from django.core.cache import cache
from django.db import models
from django.utils import timezone


class Tenant(models.Model):
    """
    Tenant model - Represents each business using the platform
    """

    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_PENDING = 'pending'
    STATUS_ARCHIVED = 'archived'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.SlugField(
        max_length=100,
        unique=True,
        help_text="Internal name sent in the X-Tenant header (e.g., 'duka-la-mama')"
    )
    domain = models.CharField(
        max_length=255,
        blank=True,
        help_text="Optional domain or subdomain (e.g., 'mama.lipia.app')"
    )

    # Business Information
    business_name = models.CharField(
        max_length=200,
        help_text="Public-facing business name, used in SMS messages"
    )
    phone_number = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    deleted_at = models.DateTimeField(null=True, blank=True)
    last_activity_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE and self.deleted_at is None

    @property
    def subscription_or_default(self):
        """Return the tenant subscription, or an unsaved free-plan one"""
        try:
            return self.subscription
        except TenantSubscription.DoesNotExist:
            return TenantSubscription.for_plan(self, TenantSubscription.PLAN_FREE)

    def invalidate_cache(self):
        """Drop cached middleware lookups so a status change is seen immediately"""
        cache.delete_many([
            f'tenant:name:{self.name}',
            f'tenant:domain:{self.domain}',
            f'tenant:jwt:{self.name}',
            f'tenant:jwt:{self.pk}',
        ])

    def set_status(self, status):
        self.status = status
        self.save(update_fields=['status', 'updated_at'])
        self.invalidate_cache()

    def soft_delete(self):
        """Archive the tenant. Returns False if it was already deleted."""
        if self.deleted_at is not None:
            return False
        self.status = self.STATUS_ARCHIVED
        self.deleted_at = timezone.now()
        self.save(update_fields=['status', 'deleted_at', 'updated_at'])
        self.invalidate_cache()
        return True


class TenantQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)


class TenantAwareModel(models.Model):
    """
    Abstract base model that adds tenant relationship to all models
    All your app models should inherit from this
    """
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='%(class)s_set',
        help_text="Which tenant owns this record"
    )

    objects = TenantQuerySet.as_manager()
    # Unfiltered access for admin and management commands
    all_objects = models.Manager()

    class Meta:
        abstract = True


class TenantSubscription(models.Model):
    """
    Subscription plan and its numeric limits, one per tenant
    """

    PLAN_FREE = 'free'
    PLAN_PRO = 'pro'
    PLAN_ENTERPRISE = 'enterprise'

    PLAN_CHOICES = [
        (PLAN_FREE, 'Free'),
        (PLAN_PRO, 'Pro'),
        (PLAN_ENTERPRISE, 'Enterprise'),
    ]

    tenant = models.OneToOneField(
        Tenant,
        on_delete=models.CASCADE,
        related_name='subscription'
    )
    plan = models.CharField(max_length=20, choices=PLAN_CHOICES, default=PLAN_FREE)
    status = models.CharField(max_length=20, default='active')

    max_users = models.PositiveIntegerField()
    max_clients = models.PositiveIntegerField()
    max_invoices_per_month = models.PositiveIntegerField()
    max_products = models.PositiveIntegerField()

    features = models.JSONField(default=dict, blank=True)
    started_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.tenant.name} - {self.plan}"

    @staticmethod
    def plan_defaults(plan):
        limits = settings.PLAN_LIMITS
        return limits.get(plan, limits[TenantSubscription.PLAN_FREE])

    @classmethod
    def for_plan(cls, tenant, plan):
        defaults = cls.plan_defaults(plan)
        return cls(
            tenant=tenant,
            plan=plan,
            max_users=defaults['users'],
            max_clients=defaults['clients'],
            max_invoices_per_month=defaults['invoices'],
            max_products=defaults['products'],
        )


class TenantFeatureFlag(models.Model):
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='feature_flags'
    )
    flag_name = models.CharField(max_length=100)
    is_enabled = models.BooleanField(default=False)
    metadata = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['flag_name']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'flag_name'],
                name='unique_flag_per_tenant'
            )
        ]

    def __str__(self):
        return f"{self.tenant.name}:{self.flag_name}={'on' if self.is_enabled else 'off'}"
