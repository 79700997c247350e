"""
Super-admin console actions.

Each action is a function `(ctx, data) -> result` registered under its
name. Mutating actions are restricted to the `super_admin` role and write
an AuditLog row.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date
from rest_framework.exceptions import NotFound, ParseError, PermissionDenied

from clients.models import Client
from core.limits import current_usage
from core.models import Tenant, TenantFeatureFlag, TenantSubscription
from core.serializers import render_amount
from payments.ledger import tenant_totals
from payments.models import Invoice, Transaction
from products.models import Product

from .models import AuditLog, SuperAdmin
from .serializers import (
    AuditLogSerializer,
    FeatureFlagSerializer,
    SubscriptionSerializer,
    SuperAdminSerializer,
    TenantSummarySerializer,
)

logger = logging.getLogger(__name__)

ACTIONS = {}


@dataclass
class AdminContext:
    admin: SuperAdmin
    ip_address: str = 'unknown'
    user_agent: str = 'unknown'


def admin_action(name, mutating=False):
    def register(fn):
        ACTIONS[name] = (fn, mutating)
        return fn
    return register


def run_action(ctx, name, data) -> Any:
    if name not in ACTIONS:
        raise ParseError(f"Unknown action: {name}")

    fn, mutating = ACTIONS[name]
    if mutating and not ctx.admin.can_modify:
        logger.warning(f"Admin {ctx.admin.email} ({ctx.admin.role}) denied {name}")
        raise PermissionDenied("Access denied: Requires super admin role")

    with transaction.atomic():
        return fn(ctx, data or {})


def log_action(ctx, action, resource_type, resource_id=None, tenant_id=None, details=None):
    AuditLog.objects.create(
        admin=ctx.admin,
        admin_email=ctx.admin.email,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id else '',
        tenant_id=tenant_id,
        details=details,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
    )
    logger.info(f"Admin {ctx.admin.email}: {action} {resource_type} {resource_id or ''}".rstrip())


def _require(data, *names):
    missing = [name for name in names if data.get(name) in (None, '')]
    if missing:
        if len(names) == 1:
            raise ParseError(f"{names[0]} is required")
        raise ParseError(f"{', '.join(names[:-1])} and {names[-1]} are required")


def _uuid(value, field):
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ParseError(f"Invalid {field}")


def _tenant(data):
    _require(data, 'tenant_id')
    tenant = Tenant.objects.filter(pk=_uuid(data['tenant_id'], 'tenant_id')).first()
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


def _int(data, name, default):
    try:
        return max(int(data.get(name, default)), 0)
    except (TypeError, ValueError):
        raise ParseError(f"{name} must be a number")


def _limit(data, name, default):
    """Optional plan limit override; absent or 0 keeps the plan default"""
    value = data.get(name)
    if value in (None, ''):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = -1
    if isinstance(value, bool) or number < 0:
        raise ParseError(f"{name} must be a non-negative integer")
    return number or default


# ============================================================================
# READ ACTIONS
# ============================================================================

@admin_action('get_platform_stats')
def get_platform_stats(ctx, data):
    tenants = Tenant.objects.filter(deleted_at__isnull=True)
    by_status = dict(tenants.order_by().values_list('status').annotate(count=Count('id')))
    by_plan = dict(
        TenantSubscription.objects.filter(tenant__deleted_at__isnull=True)
        .order_by().values_list('plan').annotate(count=Count('id'))
    )
    without_subscription = tenants.filter(subscription__isnull=True).count()
    if without_subscription:
        by_plan[TenantSubscription.PLAN_FREE] = by_plan.get(TenantSubscription.PLAN_FREE, 0) + without_subscription

    month_ago = timezone.now() - timedelta(days=30)
    payments = Transaction.all_objects.filter(type=Transaction.TYPE_PAYMENT)

    return {
        'total_tenants': tenants.count(),
        'active_tenants': by_status.get(Tenant.STATUS_ACTIVE, 0),
        'suspended_tenants': by_status.get(Tenant.STATUS_SUSPENDED, 0),
        'new_tenants_30d': tenants.filter(created_at__gte=month_ago).count(),
        'tenants_by_plan': by_plan,
        'total_users': get_user_model().objects.count(),
        'total_clients': Client.all_objects.count(),
        'total_invoices': Invoice.all_objects.count(),
        'total_invoiced': render_amount(Invoice.all_objects.aggregate(total=Sum('amount'))['total'] or 0),
        'total_collected': render_amount(payments.aggregate(total=Sum('amount'))['total'] or 0),
    }


@admin_action('get_tenants')
def get_tenants(ctx, data):
    limit = _int(data, 'limit', 50)
    offset = _int(data, 'offset', 0)

    tenants = Tenant.objects.filter(deleted_at__isnull=True).select_related('subscription')

    if data.get('status'):
        tenants = tenants.filter(status=data['status'])
    if data.get('plan'):
        plan_filter = Q(subscription__plan=data['plan'])
        if data['plan'] == TenantSubscription.PLAN_FREE:
            plan_filter |= Q(subscription__isnull=True)
        tenants = tenants.filter(plan_filter)
    if data.get('search'):
        search = data['search']
        tenants = tenants.filter(
            Q(name__icontains=search) |
            Q(business_name__icontains=search) |
            Q(email__icontains=search) |
            Q(phone_number__icontains=search)
        )

    total = tenants.count()

    tenants = tenants.annotate(
        client_count=Count('client_set', distinct=True),
        user_count=Count('profile_set', distinct=True),
    ).order_by('-created_at')[offset:offset + limit]

    return {'tenants': TenantSummarySerializer(tenants, many=True).data, 'total': total}


@admin_action('get_tenant_details')
def get_tenant_details(ctx, data):
    tenant = _tenant(data)
    invoiced, paid, outstanding = tenant_totals(tenant)

    details = TenantSummarySerializer(tenant).data
    details.update({
        'subscription': SubscriptionSerializer(tenant.subscription_or_default).data,
        'usage': {
            'users': current_usage(tenant, 'users'),
            'clients': current_usage(tenant, 'clients'),
            'products': Product.objects.for_tenant(tenant).count(),
            'invoices_this_month': current_usage(tenant, 'invoices'),
        },
        'client_count': Client.objects.for_tenant(tenant).count(),
        'user_count': tenant.profile_set.count(),
        'total_invoiced': render_amount(invoiced),
        'total_paid': render_amount(paid),
        'outstanding_balance': render_amount(outstanding),
        'feature_flags': FeatureFlagSerializer(tenant.feature_flags.all(), many=True).data,
    })

    log_action(ctx, 'view_tenant_details', 'tenant', tenant.pk, tenant.pk)
    return details


@admin_action('get_feature_flags')
def get_feature_flags(ctx, data):
    tenant = _tenant(data)
    return FeatureFlagSerializer(tenant.feature_flags.order_by('flag_name'), many=True).data


@admin_action('get_audit_logs')
def get_audit_logs(ctx, data):
    limit = _int(data, 'limit', 100)
    offset = _int(data, 'offset', 0)

    logs = AuditLog.objects.all()
    if data.get('tenant_id'):
        logs = logs.filter(tenant_id=_uuid(data['tenant_id'], 'tenant_id'))
    if data.get('admin_id'):
        logs = logs.filter(admin_id=_uuid(data['admin_id'], 'admin_id'))
    if data.get('action_filter'):
        logs = logs.filter(action=data['action_filter'])
    if data.get('start_date'):
        logs = logs.filter(created_at__gte=_moment(data['start_date'], 'start_date'))
    if data.get('end_date'):
        logs = logs.filter(created_at__lte=_moment(data['end_date'], 'end_date'))

    total = logs.count()
    return {
        'logs': AuditLogSerializer(logs.order_by('-created_at')[offset:offset + limit], many=True).data,
        'total': total,
    }


def _moment(value, field):
    moment = parse_datetime(str(value))
    if moment is None:
        day = parse_date(str(value))
        if day is None:
            raise ParseError(f"Invalid {field}")
        moment = datetime.combine(day, time.min)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


@admin_action('get_super_admins')
def get_super_admins(ctx, data):
    return SuperAdminSerializer(SuperAdmin.objects.order_by('-created_at'), many=True).data


@admin_action('update_last_login')
def update_last_login(ctx, data):
    ctx.admin.last_login_at = timezone.now()
    ctx.admin.save(update_fields=['last_login_at', 'updated_at'])
    return {'success': True}


# ============================================================================
# MUTATING ACTIONS (super_admin role only)
# ============================================================================

@admin_action('update_tenant_status', mutating=True)
def update_tenant_status(ctx, data):
    _require(data, 'tenant_id', 'status')
    valid = [value for value, _ in Tenant.STATUS_CHOICES]
    if data['status'] not in valid:
        raise ParseError(f"status must be one of: {', '.join(valid)}")

    tenant = _tenant(data)
    previous = tenant.status
    tenant.set_status(data['status'])

    log_action(
        ctx, 'update_tenant_status', 'tenant', tenant.pk, tenant.pk,
        {'new_status': data['status'], 'previous_status': previous}
    )
    return {'success': True}


@admin_action('update_subscription', mutating=True)
def update_subscription(ctx, data):
    _require(data, 'tenant_id', 'plan')
    plans = [value for value, _ in TenantSubscription.PLAN_CHOICES]
    if data['plan'] not in plans:
        raise ParseError(f"plan must be one of: {', '.join(plans)}")

    defaults = TenantSubscription.plan_defaults(data['plan'])
    limits = {
        'max_users': _limit(data, 'max_users', defaults['users']),
        'max_clients': _limit(data, 'max_clients', defaults['clients']),
        'max_invoices_per_month': _limit(data, 'max_invoices', defaults['invoices']),
        'max_products': _limit(data, 'max_products', defaults['products']),
    }
    tenant = _tenant(data)

    TenantSubscription.objects.update_or_create(
        tenant=tenant,
        defaults={'plan': data['plan'], **limits},
    )

    log_action(
        ctx, 'update_subscription', 'subscription', tenant.pk, tenant.pk,
        {'plan': data['plan'], 'max_users': limits['max_users'], 'max_clients': limits['max_clients']}
    )
    return {'success': True}


@admin_action('soft_delete_tenant', mutating=True)
def soft_delete_tenant(ctx, data):
    tenant = _tenant(data)
    deleted = tenant.soft_delete()
    log_action(ctx, 'soft_delete_tenant', 'tenant', tenant.pk, tenant.pk, {'already_deleted': not deleted})
    return {'success': True}


@admin_action('toggle_feature_flag', mutating=True)
def toggle_feature_flag(ctx, data):
    _require(data, 'tenant_id', 'flag_name', 'is_enabled')
    if not isinstance(data['is_enabled'], bool):
        raise ParseError("is_enabled must be true or false")

    tenant = _tenant(data)
    TenantFeatureFlag.objects.update_or_create(
        tenant=tenant,
        flag_name=data['flag_name'],
        defaults={'is_enabled': data['is_enabled']},
    )

    log_action(
        ctx, 'toggle_feature_flag', 'feature_flag', None, tenant.pk,
        {'flag_name': data['flag_name'], 'is_enabled': data['is_enabled']}
    )
    return {'success': True}


@admin_action('create_super_admin', mutating=True)
def create_super_admin(ctx, data):
    _require(data, 'email', 'password', 'full_name')
    role = data.get('role') or SuperAdmin.ROLE_SUPPORT_ADMIN
    if role not in (SuperAdmin.ROLE_SUPER_ADMIN, SuperAdmin.ROLE_SUPPORT_ADMIN):
        raise ParseError("role must be super_admin or support_admin")
    if len(str(data['password'])) < 6:
        raise ParseError("password must be at least 6 characters")

    User = get_user_model()
    email = str(data['email']).strip().lower()
    if User.objects.filter(username=email).exists():
        raise ParseError("A user with this email already exists")

    user = User(username=email, email=email)
    user.set_password(data['password'])
    user.save()

    try:
        with transaction.atomic():
            SuperAdmin.objects.create(user=user, email=email, full_name=data['full_name'], role=role)
    except IntegrityError as e:
        logger.error(f"Super admin row for {email} failed, removing identity: {str(e)}")
        user.delete()
        raise ParseError("Could not create super admin")

    log_action(ctx, 'create_super_admin', 'super_admin', user.pk, None, {'email': email, 'role': role})
    return {'success': True, 'user_id': user.pk}


@admin_action('update_super_admin_status', mutating=True)
def update_super_admin_status(ctx, data):
    _require(data, 'admin_id', 'is_active')
    admin_id = _uuid(data['admin_id'], 'admin_id')
    is_active = data['is_active']
    if not isinstance(is_active, bool):
        raise ParseError("is_active must be true or false")

    if admin_id == ctx.admin.pk and not is_active:
        raise ParseError("Cannot deactivate your own account")

    updated = SuperAdmin.objects.filter(pk=admin_id).update(is_active=is_active, updated_at=timezone.now())
    if not updated:
        raise NotFound("Super admin not found")

    log_action(ctx, 'update_super_admin_status', 'super_admin', admin_id, None, {'is_active': is_active})
    return {'success': True}
