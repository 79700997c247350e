"""
Tenant resolution, tenant-scoped permissions and plan limits
"""
import logging

import pytest
from django.contrib.auth.models import AnonymousUser
from rest_framework.test import APIClient

from accounts.models import UserRole
from core.exceptions import PlanLimitExceeded
from core.limits import current_usage, enforce_plan_limit
from core.logging import RequestContextFilter, TenantContextFilter
from core.models import Tenant, TenantSubscription
from core.utils import clear_thread_locals, set_current_request, set_current_tenant
from notifications.models import Notification
from notifications.services import notify
from products.models import Product

from .conftest import api_client_for, make_member, make_tenant


@pytest.mark.django_db
class TestTenantMiddleware:

    def test_no_tenant_is_rejected(self, owner):
        api = APIClient()
        api.force_authenticate(owner)

        response = api.get('/api/clients/')

        assert response.status_code == 403
        assert response.json()['code'] == 'tenant_not_found'

    def test_header_resolves_tenant(self, owner, tenant):
        api = api_client_for(owner)

        response = api.get('/api/clients/', HTTP_X_TENANT=tenant.name)

        assert response.status_code == 200
        assert response['X-Tenant-ID'] == str(tenant.pk)

    def test_token_claim_wins_over_header(self, owner, tenant, other_tenant):
        response = api_client_for(owner, tenant).get('/api/clients/', HTTP_X_TENANT=other_tenant.name)

        assert response.status_code == 200
        assert response['X-Tenant-ID'] == str(tenant.pk)

    def test_domain_resolves_tenant(self, db):
        tenant = make_tenant('mama', 'Mama Shop', domain='shop.lipia.test')
        owner = make_member(tenant, '0711000009')

        response = api_client_for(owner).get('/api/clients/', HTTP_HOST='shop.lipia.test')

        assert response.status_code == 200
        assert response['X-Tenant-ID'] == str(tenant.pk)

    def test_subdomain_resolves_tenant_by_name(self, owner, tenant):
        response = api_client_for(owner).get('/api/clients/', HTTP_HOST=f'{tenant.name}.lipia.test')

        assert response.status_code == 200

    @pytest.mark.parametrize('status', [Tenant.STATUS_SUSPENDED, Tenant.STATUS_PENDING])
    def test_inactive_tenant_is_blocked(self, staff_api, tenant, status):
        tenant.set_status(status)

        response = staff_api.get('/api/clients/')

        assert response.status_code == 403
        assert response.json()['code'] == 'tenant_inactive'

    def test_status_change_bypasses_cached_lookup(self, staff_api, tenant):
        assert staff_api.get('/api/clients/').status_code == 200

        tenant.set_status(Tenant.STATUS_SUSPENDED)
        assert staff_api.get('/api/clients/').status_code == 403

        tenant.set_status(Tenant.STATUS_ACTIVE)
        assert staff_api.get('/api/clients/').status_code == 200

    def test_soft_deleted_tenant_is_blocked(self, staff_api, tenant):
        assert tenant.soft_delete() is True
        assert tenant.soft_delete() is False

        assert staff_api.get('/api/clients/').status_code == 403

    def test_exempt_paths_need_no_tenant(self, db):
        response = APIClient().get('/health/live/')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    def test_health_reports_database_and_cache(self, db):
        response = APIClient().get('/health/')

        assert response.status_code == 200
        checks = response.json()['checks']
        assert checks['database']['status'] == 'healthy'
        assert checks['cache']['status'] == 'healthy'
        assert checks['sms']['status'] == 'not_configured'


@pytest.mark.django_db
class TestTenantPermissions:

    def test_member_of_other_tenant_is_denied(self, other_owner, tenant):
        response = api_client_for(other_owner).get('/api/clients/', HTTP_X_TENANT=tenant.name)

        assert response.status_code == 403

    def test_anonymous_is_unauthorized(self, tenant):
        response = APIClient().get('/api/clients/', HTTP_X_TENANT=tenant.name)

        assert response.status_code == 401

    def test_employee_is_staff(self, tenant):
        employee = make_member(tenant, '0711000077', role=UserRole.ROLE_USER)

        response = api_client_for(employee, tenant).get('/api/products/')

        assert response.status_code == 200

    def test_products_are_tenant_scoped(self, staff_api, tenant, other_tenant):
        Product.objects.create(tenant=tenant, name='Unga', price='180')
        foreign = Product.objects.create(tenant=other_tenant, name='Mafuta', price='300')

        listing = staff_api.get('/api/products/')

        assert [p['name'] for p in listing.data['results']] == ['Unga']
        assert staff_api.get(f'/api/products/{foreign.pk}/').status_code == 404

    def test_tenant_cannot_be_injected(self, staff_api, tenant, other_tenant):
        response = staff_api.post(
            '/api/products/', {'name': 'Chai', 'price': '50', 'tenant': str(other_tenant.pk)}, format='json'
        )

        assert response.status_code == 201
        assert Product.objects.get(pk=response.data['id']).tenant == tenant


@pytest.mark.django_db
class TestPlanLimits:

    def test_missing_subscription_falls_back_to_free(self, db, settings):
        tenant = Tenant.objects.create(name='bare', business_name='Bare')

        subscription = tenant.subscription_or_default

        assert subscription.pk is None
        assert subscription.plan == TenantSubscription.PLAN_FREE
        assert subscription.max_clients == settings.PLAN_LIMITS['free']['clients']

    def test_product_limit(self, staff_api, tenant):
        tenant.subscription.max_products = 1
        tenant.subscription.save()
        Product.objects.create(tenant=tenant, name='Unga', price='180')

        response = staff_api.post('/api/products/', {'name': 'Chai', 'price': '50'}, format='json')

        assert response.status_code == 403
        assert Product.objects.for_tenant(tenant).count() == 1

    def test_client_logins_do_not_count_as_users(self, tenant, owner):
        make_member(tenant, '0799000001', role=UserRole.ROLE_CLIENT)

        assert current_usage(tenant, 'users') == 1

    def test_limits_are_per_tenant(self, tenant, other_tenant):
        tenant.subscription.max_products = 1
        tenant.subscription.save()
        Product.objects.create(tenant=other_tenant, name='Mafuta', price='300')

        enforce_plan_limit(tenant, 'products')
        Product.objects.create(tenant=tenant, name='Unga', price='180')
        with pytest.raises(PlanLimitExceeded):
            enforce_plan_limit(tenant, 'products')


@pytest.mark.django_db
class TestNotifications:

    def test_feed_is_per_user_and_tenant(self, staff_api, tenant, owner, other_tenant):
        notify(tenant, owner, 'Payment Received', 'KES 100', Notification.TYPE_PAYMENT)
        notify(other_tenant, owner, 'Elsewhere', 'hidden')

        response = staff_api.get('/api/notifications/')

        assert [n['title'] for n in response.data['results']] == ['Payment Received']

    def test_without_recipient_nothing_is_stored(self, tenant):
        assert notify(tenant, None, 'Title', 'Body') is None
        assert not Notification.all_objects.exists()

    def test_mark_read_and_unread_count(self, staff_api, tenant, owner):
        first = notify(tenant, owner, 'One', 'x')
        notify(tenant, owner, 'Two', 'y')

        assert staff_api.get('/api/notifications/unread_count/').data == {'count': 2}

        response = staff_api.post(f'/api/notifications/{first.pk}/mark_read/')
        assert response.data['read'] is True
        assert staff_api.get('/api/notifications/unread_count/').data == {'count': 1}

        assert staff_api.post('/api/notifications/mark_all_read/').data == {'updated': 1}
        assert staff_api.get('/api/notifications/unread_count/').data == {'count': 0}


class TestLogContext:

    def record(self):
        record = logging.LogRecord('core', logging.INFO, __file__, 1, 'msg', None, None)
        TenantContextFilter().filter(record)
        RequestContextFilter().filter(record)
        return record

    def teardown_method(self):
        clear_thread_locals()

    def test_background_work(self):
        record = self.record()

        assert record.tenant == '[no-tenant]'
        assert record.user == 'system'

    def test_platform_console_request(self, rf):
        request = rf.post('/api/super-admin/', REMOTE_ADDR='10.0.0.7')
        request.user = AnonymousUser()
        set_current_request(request)

        record = self.record()

        assert record.tenant == '[platform]'
        assert record.user == 'anonymous'
        assert record.ip == '10.0.0.7'

    @pytest.mark.django_db
    def test_tenant_request(self, rf, tenant, owner):
        request = rf.get('/api/clients/')
        request.user = owner
        set_current_request(request)
        set_current_tenant(tenant)

        record = self.record()

        assert record.tenant == '[duka-la-mama]'
        assert record.user == f'{owner.username}#{owner.pk}'
        assert record.method == 'GET'
