"""
Subscription plan limits, checked before a tenant creates a resource
"""
import logging

from django.apps import apps
from django.utils import timezone

from .exceptions import PlanLimitExceeded

logger = logging.getLogger(__name__)

# resource -> (model label, subscription field, counted per calendar month)
LIMITED_RESOURCES = {
    'clients': ('clients.Client', 'max_clients', False),
    'products': ('products.Product', 'max_products', False),
    'invoices': ('payments.Invoice', 'max_invoices_per_month', True),
    'users': ('accounts.Profile', 'max_users', False),
}


def current_usage(tenant, resource):
    model_label, _, monthly = LIMITED_RESOURCES[resource]
    queryset = apps.get_model(model_label).objects.filter(tenant=tenant)

    if resource == 'users':
        queryset = queryset.exclude(user__roles__role='client')

    if monthly:
        month_start = timezone.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        queryset = queryset.filter(created_at__gte=month_start)

    return queryset.count()


def enforce_plan_limit(tenant, resource, adding=1):
    """Raise PlanLimitExceeded if adding `adding` items would exceed the plan"""
    _, limit_field, monthly = LIMITED_RESOURCES[resource]
    subscription = tenant.subscription_or_default
    limit = getattr(subscription, limit_field)
    used = current_usage(tenant, resource)

    if used + adding > limit:
        period = " this month" if monthly else ""
        logger.warning(
            f"Plan limit reached for {tenant.name}: {resource} {used}/{limit}{period}",
            extra={'tenant_id': str(tenant.pk), 'plan': subscription.plan}
        )
        raise PlanLimitExceeded(
            f"Your {subscription.plan} plan allows {limit} {resource}{period}. "
            f"Upgrade your plan to add more."
        )
