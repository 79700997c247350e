"""
Account Views - phone login, signup, PIN reset and the two RPC endpoints
used by the dashboard (`create-client-user`, `send-transaction-sms`)
"""
import logging

from django.db import OperationalError
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from clients.models import Client
from core.authentication import issue_token
from core.exceptions import DatabaseUnavailable, ProvisioningError, TenantAccessDenied
from core.models import Tenant
from core.permissions import STAFF_ROLES, has_tenant_role
from core.sms import send_transaction_sms
from core.views import FunctionAPIView

from .identity import client_login_email
from .models import Profile, UserRole
from .provisioning import provision_client_account
from .serializers import (
    CreateClientUserSerializer,
    LoginSerializer,
    PhoneNumberSerializer,
    ProfileSerializer,
    SignupSerializer,
    TransactionSmsSerializer,
)
from .services import authenticate_login, reset_password, resolve_login_emails, signup_tenant

logger = logging.getLogger(__name__)


def _session_payload(user, tenant, role):
    return {
        'token': issue_token(user, tenant=tenant, role=role),
        'user': {'id': user.pk, 'email': user.email, 'role': role},
        'tenant': {
            'id': str(tenant.pk),
            'name': tenant.name,
            'business_name': tenant.business_name,
        } if tenant else None,
    }


@method_decorator(ratelimit(key='ip', rate='10/m', method='POST', block=True), name='post')
class LoginView(APIView):
    """
    POST /api/auth/login/
    Phone (or email) + password/PIN -> bearer token
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = authenticate_login(
            data['password'],
            phone_number=data.get('phone_number'),
            email=data.get('email'),
            tenant=data.get('tenant'),
        )
        if result is None:
            logger.warning(f"Failed login for {data.get('phone_number') or data.get('email')}")
            return Response(
                {'detail': 'Invalid credentials.', 'code': 'invalid_credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        if result.tenant is not None and not result.tenant.is_active:
            return Response(
                {'detail': 'Tenant account is inactive.', 'code': 'tenant_inactive'},
                status=status.HTTP_403_FORBIDDEN
            )

        logger.info(f"User {result.user.pk} logged in")
        return Response(_session_payload(result.user, result.tenant, result.role))


@method_decorator(ratelimit(key='ip', rate='5/h', method='POST', block=True), name='post')
class SignupView(APIView):
    """
    POST /api/auth/signup/
    New business with its owner account
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user, tenant = signup_tenant(
            business_name=data['business_name'],
            phone_number=data['phone_number'],
            password=data['password'],
            full_name=data['full_name'],
            email=data.get('email', ''),
        )
        return Response(
            _session_payload(user, tenant, UserRole.ROLE_ADMIN),
            status=status.HTTP_201_CREATED
        )


class MeView(APIView):
    """
    GET /api/auth/me/
    The caller's identity with one profile per tenant
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profiles = Profile.all_objects.filter(user=request.user).select_related('tenant', 'user')
        return Response({
            'id': request.user.pk,
            'email': request.user.email,
            'role': UserRole.primary_role(request.user),
            'profiles': ProfileSerializer(profiles, many=True).data,
        })


@method_decorator(ratelimit(key='ip', rate='20/m', method='POST', block=True), name='post')
class ResolveLoginEmailView(FunctionAPIView):
    """
    POST /api/auth/resolve-login-email/
    Which login email(s) a phone number maps to
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PhoneNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        emails = resolve_login_emails(serializer.validated_data['phone_number'])
        if len(emails) == 1:
            return Response({'email': emails[0], 'multipleAccounts': False})
        return Response({'emails': emails, 'multipleAccounts': True})


@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=True), name='post')
class ResetPasswordView(FunctionAPIView):
    """
    POST /api/auth/reset-password/
    New PIN on every account of the phone number
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PhoneNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = reset_password(serializer.validated_data['phone_number'])
        return Response({
            'pin': result.pin,
            'message': 'Password reset successfully',
            'accountCount': result.account_count,
        })


class CreateClientUserView(FunctionAPIView):
    """
    POST /api/functions/create-client-user/
    Provision (or refresh) a client's portal login in a tenant the caller
    administers
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CreateClientUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tenant = Tenant.objects.filter(pk=data['tenantId']).first()
        except OperationalError as e:
            logger.error(f"Database unavailable during client provisioning: {str(e)}")
            raise DatabaseUnavailable() from e

        if tenant is None or not tenant.is_active or not has_tenant_role(request.user, tenant, STAFF_ROLES):
            logger.warning(f"User {request.user.pk} may not provision clients in tenant {data['tenantId']}")
            raise TenantAccessDenied("Unauthorized - you do not have access to this tenant")

        email = client_login_email(data['phoneNumber'], tenant.pk)
        if data['email'].lower() != email.lower():
            logger.info(f"Ignoring client-supplied email {data['email']}, using {email}")

        try:
            account = provision_client_account(
                tenant,
                data['phoneNumber'],
                data['password'],
                metadata=data.get('metadata'),
            )
        except ProvisioningError as e:
            if isinstance(e.__cause__, OperationalError):
                raise DatabaseUnavailable() from e
            raise

        return Response({'userId': account.user.pk, 'email': account.email})


class SendTransactionSmsView(FunctionAPIView):
    """
    POST /api/functions/send-transaction-sms/
    Sale/payment SMS to one of the caller's clients
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        tenant_ids = set(
            Profile.all_objects.filter(user=request.user).values_list('tenant_id', flat=True)
        )
        if not tenant_ids:
            raise TenantAccessDenied("Unauthorized - no profile found")

        serializer = TransactionSmsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        client = Client.all_objects.select_related('tenant').filter(pk=data['clientId']).first()
        if client is None:
            raise NotFound("Client not found")

        if client.tenant_id not in tenant_ids:
            logger.warning(
                f"User {request.user.pk} tried to text client {client.pk} of another tenant",
                extra={'tenant_id': str(client.tenant_id)}
            )
            raise TenantAccessDenied("Unauthorized - client belongs to a different tenant")

        result = send_transaction_sms(
            client,
            data['type'],
            data['amount'],
            invoice_number=data.get('invoiceNumber') or None,
            product_name=data.get('productName') or None,
            new_balance=data.get('newBalance'),
        )

        body = {'success': True, 'sms_sent': result.sent}
        if result.sent:
            body['sms_result'] = result.response
        else:
            body['reason'] = result.reason
        return Response(body)
