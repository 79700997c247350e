"""
Phone login, signup, login-email resolution and PIN reset
"""
from unittest.mock import patch

import jwt
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.identity import client_login_email, legacy_client_login_email, matches_phone
from accounts.models import Profile, UserRole
from accounts.provisioning import provision_client_account
from core.models import Tenant, TenantSubscription

from .conftest import PASSWORD, api_client_for

PHONE = '0722000001'


def decode(token):
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


class TestLoginEmails:

    def test_client_email_carries_tenant(self):
        assert client_login_email(PHONE, 'abc') == '0722000001-abc@client.internal'

    def test_every_format_matches_its_phone(self):
        assert matches_phone(client_login_email(PHONE, 'abc'), PHONE)
        assert matches_phone(legacy_client_login_email(PHONE), PHONE)
        assert matches_phone('0722000001@owner.internal', PHONE)

    def test_other_phones_do_not_match(self):
        assert not matches_phone(client_login_email('0722000011', 'abc'), PHONE)
        assert not matches_phone('someone@example.com', PHONE)


@pytest.mark.django_db
class TestLogin:
    url = '/api/auth/login/'

    def test_owner_logs_in_with_phone(self, owner, tenant):
        response = APIClient().post(self.url, {'phone_number': '0711000001', 'password': PASSWORD}, format='json')

        assert response.status_code == 200
        assert response.data['user']['role'] == UserRole.ROLE_ADMIN
        assert response.data['tenant']['id'] == str(tenant.pk)
        payload = decode(response.data['token'])
        assert payload['sub'] == str(owner.pk)
        assert payload['tenant'] == str(tenant.pk)

    def test_wrong_password(self, owner):
        response = APIClient().post(self.url, {'phone_number': '0711000001', 'password': 'nope'}, format='json')

        assert response.status_code == 401
        assert response.data['code'] == 'invalid_credentials'

    def test_phone_or_email_required(self):
        response = APIClient().post(self.url, {'password': PASSWORD}, format='json')

        assert response.status_code == 400

    def test_suspended_tenant(self, owner, tenant):
        tenant.set_status(Tenant.STATUS_SUSPENDED)

        response = APIClient().post(self.url, {'phone_number': '0711000001', 'password': PASSWORD}, format='json')

        assert response.status_code == 403
        assert response.data['code'] == 'tenant_inactive'

    def test_tenant_picks_between_accounts(self, tenant, other_tenant):
        provision_client_account(tenant, PHONE, '111111', notify=False)
        other = provision_client_account(other_tenant, PHONE, '111111', notify=False)

        response = APIClient().post(
            self.url,
            {'phone_number': PHONE, 'password': '111111', 'tenant': other_tenant.name},
            format='json'
        )

        assert response.status_code == 200
        assert response.data['user']['id'] == other.user.pk
        assert response.data['tenant']['id'] == str(other_tenant.pk)
        assert response.data['user']['role'] == UserRole.ROLE_CLIENT

    def test_token_authenticates_me(self, owner, tenant):
        response = api_client_for(owner, tenant).get('/api/auth/me/')

        assert response.status_code == 200
        assert response.data['role'] == UserRole.ROLE_ADMIN
        assert [p['tenant_name'] for p in response.data['profiles']] == ['Duka la Mama']

    def test_garbage_token(self):
        api = APIClient()
        api.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        assert api.get('/api/auth/me/').status_code == 401


@pytest.mark.django_db
class TestSignup:
    url = '/api/auth/signup/'
    payload = {
        'business_name': 'Mama Mboga Stores',
        'full_name': 'Akinyi Odhiambo',
        'phone_number': '0711222333',
        'password': 'secret1',
    }

    def test_creates_tenant_owner_and_free_plan(self):
        response = APIClient().post(self.url, self.payload, format='json')

        assert response.status_code == 201
        tenant = Tenant.objects.get(pk=response.data['tenant']['id'])
        assert tenant.name == 'mama-mboga-stores'
        assert tenant.business_name == 'Mama Mboga Stores'
        assert tenant.subscription.plan == TenantSubscription.PLAN_FREE

        user = get_user_model().objects.get(pk=response.data['user']['id'])
        assert user.check_password('secret1')
        assert Profile.all_objects.get(user=user).tenant == tenant
        assert UserRole.primary_role(user) == UserRole.ROLE_ADMIN

    def test_tenant_names_stay_unique(self):
        APIClient().post(self.url, self.payload, format='json')
        response = APIClient().post(
            self.url, {**self.payload, 'phone_number': '0711222444'}, format='json'
        )

        assert response.status_code == 201
        assert Tenant.objects.get(pk=response.data['tenant']['id']).name == 'mama-mboga-stores-2'

    def test_phone_already_registered(self):
        APIClient().post(self.url, self.payload, format='json')
        response = APIClient().post(self.url, self.payload, format='json')

        assert response.status_code == 400
        assert Tenant.objects.count() == 1

    def test_signup_alert(self, django_capture_on_commit_callbacks):
        with patch('accounts.services.send_alert') as send_alert:
            with django_capture_on_commit_callbacks(execute=True):
                APIClient().post(self.url, self.payload, format='json')

        assert send_alert.call_args.args[0] == "New Business Signup"
        assert 'secret1' not in send_alert.call_args.args[1]


@pytest.mark.django_db
class TestResolveLoginEmail:
    url = '/api/auth/resolve-login-email/'

    def test_single_account(self, tenant):
        account = provision_client_account(tenant, PHONE, '111111', notify=False)

        response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.status_code == 200
        assert response.data == {'email': account.email, 'multipleAccounts': False}

    def test_multiple_accounts_oldest_first(self, tenant, other_tenant):
        first = provision_client_account(tenant, PHONE, '111111', notify=False)
        second = provision_client_account(other_tenant, PHONE, '222222', notify=False)

        response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.data == {'emails': [first.email, second.email], 'multipleAccounts': True}

    def test_legacy_email_is_found(self, db):
        email = legacy_client_login_email(PHONE)
        get_user_model().objects.create_user(username=email, email=email, password='111111')

        response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.data['email'] == email

    def test_unknown_phone(self, db):
        response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.status_code == 404
        assert response.data == {'error': 'No account found with this phone number'}

    def test_invalid_phone(self, db):
        response = APIClient().post(self.url, {'phone_number': '+254722000001'}, format='json')

        assert response.status_code == 400
        assert response.data['error'] == 'Invalid input data'


@pytest.mark.django_db
class TestResetPassword:
    url = '/api/auth/reset-password/'

    def test_one_pin_for_every_account(self, tenant, other_tenant, django_capture_on_commit_callbacks):
        first = provision_client_account(tenant, PHONE, '111111', notify=False)
        second = provision_client_account(other_tenant, PHONE, '222222', notify=False)

        with patch('accounts.services.SmsGateway') as gateway:
            with django_capture_on_commit_callbacks(execute=True):
                response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.status_code == 200
        assert response.data['accountCount'] == 2
        assert response.data['message'] == 'Password reset successfully'
        pin = response.data['pin']
        assert len(pin) == 6 and pin.isdigit()

        User = get_user_model()
        assert User.objects.get(pk=first.user.pk).check_password(pin)
        assert User.objects.get(pk=second.user.pk).check_password(pin)

        phone_number, message = gateway.return_value.send.call_args.args
        assert phone_number == PHONE
        assert pin in message

    def test_unknown_phone(self, db):
        response = APIClient().post(self.url, {'phone_number': PHONE}, format='json')

        assert response.status_code == 404
