"""
Client login provisioning and the create-client-user endpoint
"""
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from django.db import DatabaseError, OperationalError
from rest_framework.test import APIClient

from accounts.identity import client_login_email
from accounts.models import Profile, UserRole
from accounts.provisioning import provision_client_account
from core.exceptions import ProvisioningError

from .conftest import api_client_for, make_member

PHONE = '0722000001'


@pytest.mark.django_db
class TestProvisionClientAccount:

    def test_creates_identity_profile_and_role(self, tenant):
        account = provision_client_account(tenant, PHONE, '123456', metadata={'client_id': 7})

        assert account.created is True
        assert account.email == client_login_email(PHONE, tenant.pk)
        assert account.user.check_password('123456')

        profile = Profile.all_objects.get(user=account.user)
        assert profile.tenant == tenant
        assert profile.phone_number == PHONE
        assert profile.metadata == {'client_id': 7}
        assert UserRole.objects.filter(user=account.user, role=UserRole.ROLE_CLIENT).exists()

    def test_repeat_call_converges_on_one_account(self, tenant):
        first = provision_client_account(tenant, PHONE, '111111')
        second = provision_client_account(tenant, PHONE, '222222', metadata={'note': 'again'})

        assert second.created is False
        assert second.user.pk == first.user.pk
        assert get_user_model().objects.filter(email=first.email).count() == 1
        assert Profile.all_objects.filter(user=first.user).count() == 1
        assert UserRole.objects.filter(user=first.user).count() == 1

        user = get_user_model().objects.get(pk=first.user.pk)
        assert user.check_password('222222')
        assert not user.check_password('111111')

    def test_same_phone_in_two_tenants_gets_two_accounts(self, tenant, other_tenant):
        first = provision_client_account(tenant, PHONE, '111111')
        second = provision_client_account(other_tenant, PHONE, '222222')

        assert first.user.pk != second.user.pk
        assert first.email != second.email

    def test_role_failure_removes_new_identity_and_profile(self, tenant):
        with patch('accounts.provisioning._create_or_update_role', side_effect=DatabaseError('boom')):
            with pytest.raises(ProvisioningError) as excinfo:
                provision_client_account(tenant, PHONE, '123456')

        assert excinfo.value.step == 'role'
        assert not get_user_model().objects.filter(email=client_login_email(PHONE, tenant.pk)).exists()
        assert not Profile.all_objects.filter(phone_number=PHONE).exists()

    def test_profile_failure_restores_existing_password(self, tenant):
        existing = provision_client_account(tenant, PHONE, '111111')

        with patch('accounts.provisioning._create_or_update_profile', side_effect=DatabaseError('boom')):
            with pytest.raises(ProvisioningError) as excinfo:
                provision_client_account(tenant, PHONE, '999999')

        assert excinfo.value.step == 'profile'
        user = get_user_model().objects.get(pk=existing.user.pk)
        assert user.check_password('111111')
        assert Profile.all_objects.filter(user=user).count() == 1

    def test_identity_failure_leaves_nothing_to_undo(self, tenant):
        with patch('accounts.provisioning._create_or_fetch_identity', side_effect=DatabaseError('boom')):
            with pytest.raises(ProvisioningError) as excinfo:
                provision_client_account(tenant, PHONE, '123456')

        assert excinfo.value.step == 'identity'
        assert not Profile.all_objects.exists()

    def test_alert_and_sms_after_commit(self, tenant, django_capture_on_commit_callbacks):
        with patch('accounts.provisioning.send_alert') as send_alert, \
                patch('accounts.provisioning.SmsGateway') as gateway:
            with django_capture_on_commit_callbacks(execute=True):
                provision_client_account(tenant, PHONE, '482913', full_name='Wanjiku')

        title, body, notify_type = send_alert.call_args.args
        assert title == "New Client Created"
        assert notify_type == 'success'
        assert 'Wanjiku' in body
        assert '482913' not in body

        phone_number, message = gateway.return_value.send.call_args.args
        assert phone_number == PHONE
        assert '482913' in message
        assert 'Duka la Mama' in message

    def test_notify_false_sends_nothing(self, tenant, django_capture_on_commit_callbacks):
        with patch('accounts.provisioning.send_alert') as send_alert:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                provision_client_account(tenant, PHONE, '123456', notify=False)

        assert callbacks == []
        send_alert.assert_not_called()


@pytest.mark.django_db
class TestCreateClientUserEndpoint:
    url = '/api/functions/create-client-user/'

    def payload(self, tenant, **overrides):
        data = {
            'email': 'ignored@example.com',
            'password': '123456',
            'phoneNumber': PHONE,
            'tenantId': str(tenant.pk),
            'metadata': {'full_name': 'Wanjiku'},
        }
        data.update(overrides)
        return data

    def test_staff_provisions_a_client(self, staff_api, tenant):
        response = staff_api.post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 200
        assert response.data['email'] == client_login_email(PHONE, tenant.pk)
        user = get_user_model().objects.get(pk=response.data['userId'])
        assert user.check_password('123456')

    def test_repeat_returns_same_user(self, staff_api, tenant):
        first = staff_api.post(self.url, self.payload(tenant), format='json')
        second = staff_api.post(self.url, self.payload(tenant, password='654321'), format='json')

        assert first.data['userId'] == second.data['userId']

    def test_other_tenant_is_forbidden(self, staff_api, other_tenant):
        response = staff_api.post(self.url, self.payload(other_tenant), format='json')

        assert response.status_code == 403
        assert response.data == {'error': "Unauthorized - you do not have access to this tenant"}
        assert not Profile.all_objects.filter(tenant=other_tenant, phone_number=PHONE).exists()

    def test_clients_cannot_provision(self, tenant):
        member = make_member(tenant, '0799000000', role=UserRole.ROLE_CLIENT)
        api = api_client_for(member)

        response = api.post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 403

    def test_inactive_tenant_is_forbidden(self, staff_api, tenant):
        tenant.set_status('suspended')

        response = staff_api.post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 403

    def test_invalid_input(self, staff_api, tenant):
        response = staff_api.post(
            self.url, self.payload(tenant, phoneNumber='712', password='1'), format='json'
        )

        assert response.status_code == 400
        assert response.data['error'] == 'Invalid input data'
        assert set(response.data['details']) == {'phoneNumber', 'password'}

    def test_requires_authentication(self, tenant):
        response = APIClient().post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 401
        assert 'error' in response.data

    def test_database_outage_is_a_503(self, staff_api, tenant):
        with patch('accounts.provisioning._create_or_update_profile', side_effect=OperationalError('gone')):
            response = staff_api.post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 503
        assert response.data == {'error': "Service temporarily unavailable. Please try again."}

    def test_step_failure_is_a_500_naming_the_step(self, staff_api, tenant):
        with patch('accounts.provisioning._create_or_update_role', side_effect=DatabaseError('boom')):
            response = staff_api.post(self.url, self.payload(tenant), format='json')

        assert response.status_code == 500
        assert response.data == {'error': "Failed to create client user (role step)."}
