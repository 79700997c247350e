# core/authentication.py
import logging
from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication

logger = logging.getLogger(__name__)


def issue_token(user, tenant=None, role=None):
    """Sign a bearer token for `user`, optionally bound to a tenant"""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user.pk),
        'email': user.email,
        'iat': now,
        'exp': now + timedelta(seconds=settings.JWT_EXPIRATION_DELTA),
    }
    if tenant is not None:
        payload['tenant'] = str(tenant.pk)
    if role:
        payload['role'] = role
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token):
    """Verify signature and expiry. Raises jwt.InvalidTokenError on failure."""
    return jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={
            "require": ["exp", "iat", "sub"],
            "verify_exp": True,
            "verify_iat": True,
        }
    )


def get_bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    return auth_header.split(' ', 1)[1].strip() or None


class JWTAuthentication(BaseAuthentication):
    """
    DRF authentication for `Authorization: Bearer <jwt>`.
    request.auth is the decoded payload.
    """

    def authenticate(self, request):
        token = get_bearer_token(request)
        if token is None:
            return None

        try:
            payload = decode_token(token)
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token has expired.')
        except jwt.InvalidTokenError:
            raise exceptions.AuthenticationFailed('Invalid authentication token.')

        User = get_user_model()
        user = User.objects.filter(pk=payload['sub'], is_active=True).first()
        if user is None:
            logger.warning(f"Token for unknown or inactive user {payload['sub']}")
            raise exceptions.AuthenticationFailed('Invalid authentication token.')

        return user, payload

    def authenticate_header(self, request):
        return 'Bearer'
