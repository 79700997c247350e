"""
Ledger over HTTP: every view that shows a balance shows the same number
"""
from decimal import Decimal
from unittest.mock import patch

import pytest

from accounts.models import UserRole
from clients.services import create_client
from payments.models import Invoice, PaymentDetail
from payments.services import next_invoice_number, record_payment, record_sale
from products.models import Product

from .conftest import api_client_for, money


@pytest.fixture
def portal_customer(ctx):
    client, _ = create_client(ctx, name='Wanjiku', phone_number='0722000001')
    return client


@pytest.fixture
def portal_api(portal_customer, tenant):
    return api_client_for(portal_customer.user, tenant, UserRole.ROLE_CLIENT)


@pytest.mark.django_db
class TestClientEndpoints:

    def test_create_client_returns_pin_once(self, staff_api):
        response = staff_api.post(
            '/api/clients/', {'name': 'Wanjiku', 'phone_number': '0722000001'}, format='json'
        )

        assert response.status_code == 201
        assert response.data['has_login'] is True
        assert len(response.data['pin']) == 6
        assert money(response.data['outstanding_balance']) == 0

        detail = staff_api.get(f"/api/clients/{response.data['id']}/")
        assert 'pin' not in detail.data

    def test_create_client_without_login(self, staff_api):
        response = staff_api.post(
            '/api/clients/',
            {'name': 'Walk-in', 'phone_number': '0722000009', 'create_login': False},
            format='json'
        )

        assert response.status_code == 201
        assert response.data['has_login'] is False
        assert 'pin' not in response.data

    def test_duplicate_phone_in_tenant(self, staff_api, customer):
        response = staff_api.post(
            '/api/clients/', {'name': 'Again', 'phone_number': customer.phone_number}, format='json'
        )

        assert response.status_code == 400
        assert 'phone_number' in response.data

    def test_same_phone_in_another_tenant_is_fine(self, other_staff_api, customer):
        response = other_staff_api.post(
            '/api/clients/',
            {'name': 'Wanjiku', 'phone_number': customer.phone_number, 'create_login': False},
            format='json'
        )

        assert response.status_code == 201

    def test_invalid_phone_number(self, staff_api):
        response = staff_api.post('/api/clients/', {'name': 'X', 'phone_number': '12345'}, format='json')

        assert response.status_code == 400
        assert 'phone_number' in response.data

    def test_list_is_scoped_to_tenant(self, staff_api, customer, make_client, other_tenant):
        make_client(name='Stranger', phone_number='0733000001', owner_tenant=other_tenant)

        response = staff_api.get('/api/clients/')

        assert response.status_code == 200
        assert [row['name'] for row in response.data['results']] == ['Wanjiku']

    def test_other_tenants_client_is_not_found(self, staff_api, make_client, other_tenant):
        stranger = make_client(name='Stranger', phone_number='0733000001', owner_tenant=other_tenant)

        assert staff_api.get(f'/api/clients/{stranger.pk}/').status_code == 404
        assert staff_api.delete(f'/api/clients/{stranger.pk}/').status_code == 404

    def test_client_limit(self, staff_api, tenant, customer):
        tenant.subscription.max_clients = 1
        tenant.subscription.save()

        response = staff_api.post(
            '/api/clients/', {'name': 'Two', 'phone_number': '0722000002'}, format='json'
        )

        assert response.status_code == 403
        assert response.data['detail'].code == 'plan_limit_exceeded'


@pytest.mark.django_db
class TestSalesAndPayments:

    def test_sale_then_payments_through_the_api(self, staff_api, customer):
        sale = staff_api.post(
            f'/api/clients/{customer.pk}/sales/', {'amount': '1000.00'}, format='json'
        )
        assert sale.status_code == 201
        assert sale.data['invoice']['status'] == Invoice.STATUS_PENDING
        assert money(sale.data['outstanding_balance']) == Decimal('1000')

        invoice_id = sale.data['invoice']['id']
        first = staff_api.post(f'/api/invoices/{invoice_id}/payments/', {'amount': '400'}, format='json')
        assert first.status_code == 201
        assert first.data['invoice']['status'] == Invoice.STATUS_PARTIAL
        assert money(first.data['invoice']['remaining']) == Decimal('600')

        second = staff_api.post(f'/api/invoices/{invoice_id}/payments/', {'amount': '600'}, format='json')
        assert second.data['invoice']['status'] == Invoice.STATUS_PAID
        assert money(second.data['outstanding_balance']) == 0

    def test_sale_amount_defaults_to_product_price(self, staff_api, tenant, customer):
        product = Product.objects.create(tenant=tenant, name='Unga 2kg', price=Decimal('180'))

        response = staff_api.post(
            '/api/invoices/', {'client': customer.pk, 'product': product.pk}, format='json'
        )

        assert response.status_code == 201
        assert money(response.data['amount']) == Decimal('180')
        assert response.data['product_name'] == 'Unga 2kg'

    def test_sale_with_new_product(self, staff_api, tenant, customer):
        response = staff_api.post(
            '/api/invoices/',
            {'client': customer.pk, 'new_product': {'name': 'Sukari', 'price': '250.00'}},
            format='json'
        )

        assert response.status_code == 201
        assert money(response.data['amount']) == Decimal('250')
        assert Product.objects.for_tenant(tenant).filter(name='Sukari').exists()

    def test_sale_needs_an_amount_or_product(self, staff_api, customer):
        response = staff_api.post('/api/invoices/', {'client': customer.pk}, format='json')

        assert response.status_code == 400
        assert 'amount' in response.data

    def test_sale_for_other_tenants_client(self, staff_api, make_client, other_tenant):
        stranger = make_client(name='Stranger', phone_number='0733000001', owner_tenant=other_tenant)

        response = staff_api.post('/api/invoices/', {'client': stranger.pk, 'amount': '10'}, format='json')

        assert response.status_code == 400
        assert not Invoice.all_objects.exists()

    def test_colliding_invoice_number_is_a_400(self, staff_api, ctx, customer):
        stale = next_invoice_number(ctx.tenant)
        record_sale(ctx, customer.pk, Decimal('100'))

        with patch('payments.services.next_invoice_number', return_value=stale):
            response = staff_api.post('/api/invoices/', {'client': customer.pk, 'amount': '25'}, format='json')

        assert response.status_code == 400
        assert 'invoice_number' in response.data
        assert Invoice.objects.for_tenant(ctx.tenant).count() == 1

    def test_rejected_overpayment_is_a_400(self, staff_api, ctx, customer, settings):
        settings.LEDGER = {'OVERPAYMENT_POLICY': 'reject', 'CURRENCY': 'KES'}
        invoice = record_sale(ctx, customer.pk, Decimal('100')).invoice

        response = staff_api.post(f'/api/invoices/{invoice.pk}/payments/', {'amount': '150'}, format='json')

        assert response.status_code == 400
        assert response.data['detail'].code == 'overpayment_rejected'

    def test_zero_payment_is_invalid(self, staff_api, ctx, customer):
        invoice = record_sale(ctx, customer.pk, Decimal('100')).invoice

        response = staff_api.post(f'/api/invoices/{invoice.pk}/payments/', {'amount': '0'}, format='json')

        assert response.status_code == 400

    def test_invoice_patch_marks_overdue(self, staff_api, ctx, customer):
        invoice = record_sale(ctx, customer.pk, Decimal('100')).invoice

        response = staff_api.patch(f'/api/invoices/{invoice.pk}/', {'status': 'overdue'}, format='json')

        assert response.status_code == 200
        assert response.data['status'] == Invoice.STATUS_OVERDUE

    def test_invoice_delete_refreshes_balance(self, staff_api, ctx, customer):
        invoice = record_sale(ctx, customer.pk, Decimal('100')).invoice

        response = staff_api.delete(f'/api/invoices/{invoice.pk}/')

        assert response.status_code == 204
        customer.refresh_from_db()
        assert customer.total_balance == 0

    def test_transactions_are_read_only(self, staff_api, ctx, customer):
        record_sale(ctx, customer.pk, Decimal('100'))

        listing = staff_api.get('/api/transactions/')
        assert listing.status_code == 200
        assert listing.data['results'][0]['type'] == 'sale'

        response = staff_api.post(
            '/api/transactions/', {'client': customer.pk, 'type': 'payment', 'amount': '100'}, format='json'
        )
        assert response.status_code == 405


@pytest.mark.django_db
class TestBalanceAgreement:

    def test_every_view_reports_the_same_balance(self, staff_api, portal_api, ctx, portal_customer):
        first = record_sale(ctx, portal_customer.pk, Decimal('1000')).invoice
        record_sale(ctx, portal_customer.pk, Decimal('500'))
        record_payment(ctx, first.pk, Decimal('400'))
        expected = Decimal('1100')

        listing = staff_api.get('/api/clients/')
        detail = staff_api.get(f'/api/clients/{portal_customer.pk}/')
        statement = staff_api.get(f'/api/clients/{portal_customer.pk}/statement/')
        dashboard = staff_api.get('/api/dashboard/')
        portal = portal_api.get('/api/portal/')

        assert money(listing.data['results'][0]['outstanding_balance']) == expected
        assert money(detail.data['outstanding_balance']) == expected
        assert money(detail.data['total_balance']) == expected
        assert money(statement.data['outstanding_balance']) == expected
        assert money(dashboard.data['outstanding_balance']) == expected
        assert money(portal.data['outstanding_balance']) == expected

        top_up = staff_api.post(
            f'/api/clients/{portal_customer.pk}/top-up/', {'amount': '100'}, format='json'
        )
        assert top_up.status_code == 201
        assert top_up.data['invoice']['id'] == first.pk
        assert money(top_up.data['outstanding_balance']) == expected - 100

    def test_amounts_render_as_two_place_strings(self, staff_api, portal_api, ctx, portal_customer):
        invoice = record_sale(ctx, portal_customer.pk, Decimal('1000')).invoice

        payment = staff_api.post(f'/api/invoices/{invoice.pk}/payments/', {'amount': '400'}, format='json').json()
        detail = staff_api.get(f'/api/clients/{portal_customer.pk}/').json()
        statement = staff_api.get(f'/api/clients/{portal_customer.pk}/statement/').json()
        dashboard = staff_api.get('/api/dashboard/').json()
        portal = portal_api.get('/api/portal/').json()

        assert payment['invoice']['amount'] == '1000.00'
        assert payment['invoice']['total_paid'] == '400.00'
        assert payment['invoice']['remaining'] == '600.00'
        assert payment['outstanding_balance'] == '600.00'
        assert detail['total_balance'] == '600.00'
        assert detail['total_invoiced'] == '1000.00'
        assert detail['outstanding_balance'] == '600.00'
        assert statement['outstanding_balance'] == '600.00'
        assert dashboard['outstanding_balance'] == '600.00'
        assert dashboard['monthly'][-1] == {
            'month': dashboard['monthly'][-1]['month'], 'sales': '1000.00', 'payments': '400.00',
        }
        assert portal['outstanding_balance'] == '600.00'


@pytest.mark.django_db
class TestDashboardAndPortal:

    def test_dashboard_counts(self, staff_api, ctx, customer):
        paid = record_sale(ctx, customer.pk, Decimal('300')).invoice
        record_sale(ctx, customer.pk, Decimal('200'))
        record_payment(ctx, paid.pk, Decimal('300'))

        response = staff_api.get('/api/dashboard/')

        assert response.status_code == 200
        assert response.data['total_clients'] == 1
        assert response.data['invoices_by_status'] == {
            'pending': 1, 'partial': 0, 'paid': 1, 'overdue': 0,
        }
        assert money(response.data['total_invoiced']) == Decimal('500')
        assert money(response.data['total_paid']) == Decimal('300')
        assert len(response.data['monthly']) == 6
        current = response.data['monthly'][-1]
        assert money(current['sales']) == Decimal('500')
        assert money(current['payments']) == Decimal('300')

    def test_portal_shows_own_ledger_and_payment_options(self, portal_api, ctx, tenant, portal_customer, make_client):
        neighbour = make_client(name='Neighbour', phone_number='0722000005')
        record_sale(ctx, portal_customer.pk, Decimal('700'))
        record_sale(ctx, neighbour.pk, Decimal('900'))
        PaymentDetail.objects.create(
            tenant=tenant, payment_type=PaymentDetail.TYPE_TILL, name='Duka Till', till='123456'
        )
        PaymentDetail.objects.create(
            tenant=tenant, payment_type=PaymentDetail.TYPE_TILL, name='Old Till', till='1', is_active=False
        )

        response = portal_api.get('/api/portal/')

        assert response.status_code == 200
        assert response.data['business_name'] == 'Duka la Mama'
        assert response.data['client']['id'] == portal_customer.pk
        assert len(response.data['invoices']) == 1
        assert [detail['name'] for detail in response.data['payment_details']] == ['Duka Till']

    def test_portal_is_for_clients_only(self, staff_api):
        assert staff_api.get('/api/portal/').status_code == 403

    def test_clients_cannot_use_staff_endpoints(self, portal_api):
        assert portal_api.get('/api/clients/').status_code == 403
        assert portal_api.get('/api/dashboard/').status_code == 403

    def test_clients_see_active_payment_details(self, portal_api, tenant):
        PaymentDetail.objects.create(
            tenant=tenant, payment_type=PaymentDetail.TYPE_PAYBILL, name='Paybill',
            paybill='522522', account_no='DUKA'
        )

        response = portal_api.get('/api/payment-details/active/')

        assert response.status_code == 200
        assert response.data[0]['paybill'] == '522522'

    def test_paybill_requires_account_number(self, staff_api):
        response = staff_api.post(
            '/api/payment-details/',
            {'payment_type': 'mpesa_paybill', 'name': 'Paybill', 'paybill': '522522'},
            format='json'
        )

        assert response.status_code == 400
