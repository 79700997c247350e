"""
Account services: login resolution, PIN reset, sign in and tenant signup
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils.text import slugify
from rest_framework import serializers
from rest_framework.exceptions import NotFound

from core.alerts import send_alert
from core.models import Tenant, TenantSubscription
from core.sms import SmsGateway, pin_reset_message
from core.tasks import dispatch
from core.utils import generate_pin

from .identity import login_email_regex, owner_login_email
from .models import Profile, UserRole

logger = logging.getLogger(__name__)


@dataclass
class PasswordReset:
    pin: str
    account_count: int


@dataclass
class LoginResult:
    user: Any
    tenant: Optional[Tenant]
    role: Optional[str]


def find_accounts_for_phone(phone_number) -> List[Any]:
    """Every identity reachable from a phone number, oldest first"""
    User = get_user_model()
    return list(
        User.objects.filter(
            Q(email__regex=login_email_regex(phone_number)) |
            Q(profiles__phone_number=phone_number)
        ).distinct().order_by('date_joined', 'pk')
    )


def resolve_login_emails(phone_number) -> List[str]:
    emails = [user.email for user in find_accounts_for_phone(phone_number) if user.email]
    if not emails:
        raise NotFound("No account found with this phone number")
    return emails


def reset_password(phone_number) -> PasswordReset:
    """Set one fresh PIN on every account of the phone number and text it"""
    accounts = find_accounts_for_phone(phone_number)
    if not accounts:
        raise NotFound("No account found with this phone number")

    pin = generate_pin()
    updated = 0
    for user in accounts:
        try:
            user.set_password(pin)
            user.save(update_fields=['password'])
            updated += 1
        except DatabaseError as e:
            logger.error(f"Password reset failed for user {user.pk}: {str(e)}")

    logger.info(f"PIN reset for {phone_number}: {updated}/{len(accounts)} accounts updated")

    if updated:
        dispatch(SmsGateway().send, phone_number, pin_reset_message(pin))

    return PasswordReset(pin=pin, account_count=updated)


def _resolve_tenant(identifier):
    if not identifier:
        return None
    return Tenant.objects.filter(Q(name=identifier) | Q(pk__in=_as_uuid(identifier))).first()


def _as_uuid(value):
    try:
        return [uuid.UUID(str(value))]
    except ValueError:
        return []


def authenticate_login(password, phone_number=None, email=None, tenant=None) -> Optional[LoginResult]:
    """
    Check a password against the candidate identities. `tenant` (name or
    id) picks one account when the phone has several.
    """
    User = get_user_model()
    if email:
        candidates = list(User.objects.filter(email__iexact=email))
    else:
        candidates = find_accounts_for_phone(phone_number)

    wanted_tenant = _resolve_tenant(tenant)
    if tenant and wanted_tenant is None:
        return None

    for user in candidates:
        if not user.is_active or not user.check_password(password):
            continue

        profiles = Profile.all_objects.filter(user=user).select_related('tenant')
        if wanted_tenant is not None:
            profile = profiles.filter(tenant=wanted_tenant).first()
            if profile is None:
                continue
        else:
            profile = profiles.order_by('created_at').first()

        return LoginResult(
            user=user,
            tenant=profile.tenant if profile else None,
            role=UserRole.primary_role(user),
        )

    return None


def _unique_tenant_name(business_name):
    base = slugify(business_name)[:90] or 'tenant'
    name = base
    suffix = 2
    while Tenant.objects.filter(name=name).exists():
        name = f"{base}-{suffix}"
        suffix += 1
    return name


def signup_tenant(business_name, phone_number, password, full_name, email=''):
    """Create a tenant with its owner account on the free plan"""
    User = get_user_model()
    login_email = owner_login_email(phone_number)

    if User.objects.filter(username=login_email).exists():
        raise serializers.ValidationError(
            {"phone_number": "An account with this phone number already exists."}
        )

    with transaction.atomic():
        tenant = Tenant.objects.create(
            name=_unique_tenant_name(business_name),
            business_name=business_name,
            phone_number=phone_number,
            email=email,
        )
        TenantSubscription.for_plan(tenant, TenantSubscription.PLAN_FREE).save()

        user = User(username=login_email, email=login_email)
        user.set_password(password)
        user.save()

        Profile.all_objects.create(
            user=user,
            tenant=tenant,
            full_name=full_name,
            phone_number=phone_number,
        )
        UserRole.objects.create(user=user, role=UserRole.ROLE_ADMIN)

    logger.info(f"Tenant {tenant.name} signed up", extra={'tenant_id': str(tenant.pk)})
    dispatch(
        send_alert,
        "New Business Signup",
        f"**Business:** {business_name}\n**Owner:** {full_name}\n**Phone:** {phone_number}",
        'success',
    )
    return user, tenant
