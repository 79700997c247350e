"""
Shared fixtures: two tenants, their staff, clients and API clients.

Side effects (SMS, alerts, notifications) are scheduled with on_commit; tests
that assert on them wrap the call in django_capture_on_commit_callbacks.
"""
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from accounts.identity import owner_login_email
from accounts.models import Profile, UserRole
from clients.models import Client
from core.authentication import issue_token
from core.context import TenantContext
from core.models import Tenant, TenantSubscription

PASSWORD = 'secret123'


def money(value):
    """Compare amounts whether a serializer rendered them as str or Decimal"""
    return Decimal(str(value))


def make_tenant(name, business_name, plan=TenantSubscription.PLAN_FREE, **kwargs):
    tenant = Tenant.objects.create(name=name, business_name=business_name, **kwargs)
    TenantSubscription.for_plan(tenant, plan).save()
    return tenant


def make_member(tenant, phone_number, role=UserRole.ROLE_ADMIN, full_name='Owner'):
    User = get_user_model()
    email = owner_login_email(phone_number)
    user = User.objects.filter(username=email).first()
    if user is None:
        user = User.objects.create_user(username=email, email=email, password=PASSWORD)
    Profile.all_objects.create(user=user, tenant=tenant, full_name=full_name, phone_number=phone_number)
    UserRole.objects.get_or_create(user=user, role=role)
    return user


def api_client_for(user, tenant=None, role=None):
    api = APIClient()
    api.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(user, tenant=tenant, role=role)}")
    return api


@pytest.fixture(autouse=True)
def clear_cache():
    # The tenant middleware caches lookups by name
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def tenant(db):
    return make_tenant('duka-la-mama', 'Duka la Mama')


@pytest.fixture
def other_tenant(db):
    return make_tenant('kibanda', 'Kibanda Shop')


@pytest.fixture
def owner(tenant):
    return make_member(tenant, '0711000001', full_name='Mama Njeri')


@pytest.fixture
def other_owner(other_tenant):
    return make_member(other_tenant, '0711000002', full_name='Baba Otieno')


@pytest.fixture
def ctx(tenant, owner):
    return TenantContext(tenant=tenant, user=owner)


@pytest.fixture
def other_ctx(other_tenant, other_owner):
    return TenantContext(tenant=other_tenant, user=other_owner)


@pytest.fixture
def staff_api(owner, tenant):
    return api_client_for(owner, tenant, UserRole.ROLE_ADMIN)


@pytest.fixture
def other_staff_api(other_owner, other_tenant):
    return api_client_for(other_owner, other_tenant, UserRole.ROLE_ADMIN)


@pytest.fixture
def make_client(tenant):
    def factory(name='Wanjiku', phone_number='0722000001', owner_tenant=None, **kwargs):
        return Client.objects.create(
            tenant=owner_tenant or tenant,
            name=name,
            phone_number=phone_number,
            **kwargs
        )
    return factory


@pytest.fixture
def customer(make_client):
    return make_client()
