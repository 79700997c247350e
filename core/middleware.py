# core/middleware.py
import logging
import uuid

import jwt
from django.conf import settings
from django.core.cache import cache
from django.db.models import Q
from django.http import JsonResponse
from django_ratelimit.decorators import ratelimit
from django_ratelimit.exceptions import Ratelimited

from .authentication import decode_token, get_bearer_token
from .models import Tenant
from .utils import (
    clear_thread_locals,
    get_client_ip,
    get_current_tenant,
    set_current_request,
    set_current_tenant,
)

logger = logging.getLogger(__name__)


class TenantMiddleware:
    """
    Resolves the tenant for every API request and attaches it to
    request.tenant. Thread-local state is only used for log enrichment.
    """

    # Paths that don't require tenant identification
    EXEMPT_PATHS = [
        '/admin/',
        '/static/',
        '/media/',
        '/health/',
        '/rate-limit-exceeded/',
        '/api/auth/',  # Login, signup, PIN reset
        '/api/functions/',  # Resolve the tenant from the caller's profile
        '/api/super-admin/',  # Platform operators are not tenant-bound
    ]

    def __init__(self, get_response):
        self.get_response = get_response
        self.rate_limit_config = getattr(settings, 'TENANT_RATE_LIMIT', '100/m')

    def __call__(self, request):
        """Main middleware entry point"""

        # Store request in thread-local for logging
        set_current_request(request)

        # 1. Allow Public Routes
        if self._is_exempt_path(request.path):
            request.tenant = None
            set_current_tenant(None)
            try:
                return self.get_response(request)
            finally:
                clear_thread_locals()

        # 2. Apply Rate Limiting to tenant identification
        try:
            self._apply_rate_limiting(request)
        except Ratelimited:
            response = JsonResponse({
                "detail": "Too many tenant identification attempts. Please try again later.",
                "code": "rate_limit_exceeded"
            }, status=429)
            clear_thread_locals()
            return response

        # 3. Identify Tenant (priority: JWT > Header > Domain)
        tenant = None
        detection_method = None

        if 'Authorization' in request.headers:
            tenant, detection_method = self._get_tenant_from_jwt(request)

        if not tenant:
            tenant_name = request.headers.get('X-Tenant')
            if tenant_name:
                tenant, detection_method = self._get_tenant_by_name(tenant_name)

        if not tenant:
            host = request.get_host().split(':')[0]
            tenant, detection_method = self._get_tenant_by_domain(host)

        # 4. Block if No Tenant Found
        if not tenant:
            logger.warning(
                f"Tenant not found for {request.method} {request.path}",
                extra={
                    'ip': get_client_ip(request),
                    'user_agent': request.META.get('HTTP_USER_AGENT', ''),
                    'x_tenant': request.headers.get('X-Tenant'),
                    'host': request.get_host(),
                }
            )
            response = self._tenant_not_found_response(request)
            clear_thread_locals()
            return response

        # 5. Validate Tenant is Active
        if not tenant.is_active:
            logger.warning(
                f"Inactive tenant attempted access: {tenant.name} ({tenant.status})",
                extra={'tenant_id': str(tenant.pk), 'path': request.path}
            )
            response = JsonResponse({
                "detail": "Tenant account is inactive.",
                "code": "tenant_inactive"
            }, status=403)
            clear_thread_locals()
            return response

        # 6. Attach Tenant to Request and Thread-Local
        request.tenant = tenant
        set_current_tenant(tenant)

        request.META['TENANT_ID'] = str(tenant.pk)
        request.META['TENANT_NAME'] = tenant.name

        logger.debug(
            f"Tenant identified: {tenant.name} via {detection_method}",
            extra={
                'tenant_id': str(tenant.pk),
                'detection_method': detection_method,
                'path': request.path
            }
        )

        try:
            response = self.get_response(request)

            # 7. Add Security Headers
            self._add_security_headers(response)

            return response

        finally:
            # 8. Always clean up thread-local storage
            clear_thread_locals()

    def _is_exempt_path(self, path):
        """Check if path is exempt from tenant requirement"""
        return any(path.startswith(exempt) for exempt in self.EXEMPT_PATHS)

    def _apply_rate_limiting(self, request):
        """Apply rate limiting to tenant identification"""
        @ratelimit(key='ip', rate=self.rate_limit_config, method=ratelimit.ALL)
        def rate_limit_check(req):
            return None

        rate_limit_check(request)

    def _cached_lookup(self, cache_key, query):
        """Tenant lookup with negative caching to prevent DB hammering"""
        tenant = cache.get(cache_key)

        if tenant is None:
            tenant = Tenant.objects.filter(query).first()
            if tenant:
                cache.set(cache_key, tenant, settings.TENANT_CACHE_TIMEOUT)
            else:
                cache.set(cache_key, False, 60)
                return None

        return tenant or None

    def _get_tenant_by_name(self, tenant_name):
        """Get tenant by name with Redis caching"""
        tenant = self._cached_lookup(f'tenant:name:{tenant_name}', Q(name=tenant_name))
        return (tenant, 'header') if tenant else (None, None)

    def _get_tenant_by_domain(self, host):
        """Get tenant by domain or subdomain with Redis caching"""
        parts = host.split('.')
        subdomain = parts[0] if len(parts) >= 2 else None

        query = Q(domain=host) & ~Q(domain='')
        if subdomain and subdomain != 'www':
            query |= Q(name=subdomain)

        tenant = self._cached_lookup(f'tenant:domain:{host}', query)
        return (tenant, 'domain') if tenant else (None, None)

    def _get_tenant_from_jwt(self, request):
        """Get tenant from the `tenant` claim of a verified bearer token"""
        token = get_bearer_token(request)
        if not token:
            return None, None

        try:
            payload = decode_token(token)
        except jwt.InvalidTokenError:
            return None, None

        tenant_identifier = payload.get("tenant")
        if not tenant_identifier:
            return None, None

        try:
            query = Q(pk=uuid.UUID(str(tenant_identifier)))
        except ValueError:
            query = Q(name=tenant_identifier)

        tenant = self._cached_lookup(f'tenant:jwt:{tenant_identifier}', query)
        return (tenant, 'jwt') if tenant else (None, None)

    def _tenant_not_found_response(self, request):
        """Return secure error response when tenant not found"""
        error_data = {
            "detail": "Unable to identify tenant. "
                      "Please check your domain, X-Tenant header, or authentication token.",
            "code": "tenant_not_found"
        }

        # Only include debug info in development
        if settings.DEBUG:
            error_data["debug"] = {
                "received_host": request.get_host(),
                "x_tenant_header": request.headers.get('X-Tenant'),
                "has_auth_header": 'Authorization' in request.headers
            }

        return JsonResponse(error_data, status=403)

    def _add_security_headers(self, response):
        """Add security headers to response"""
        response['X-Content-Type-Options'] = 'nosniff'
        response['X-Frame-Options'] = 'DENY'

        tenant = get_current_tenant()
        if tenant:
            response['X-Tenant-ID'] = str(tenant.pk)

        if not settings.DEBUG:
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
            response['Content-Security-Policy'] = "default-src 'self'"
