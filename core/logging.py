# core/logging.py
import logging

from .utils import get_client_ip, get_current_request, get_current_tenant

PLATFORM_PATH_PREFIX = '/api/super-admin/'


def tenant_label(tenant, request=None):
    if tenant is not None:
        return f"[{tenant.name}]"
    if request is not None and request.path.startswith(PLATFORM_PATH_PREFIX):
        return "[platform]"
    return "[no-tenant]"


class TenantContextFilter(logging.Filter):
    """Tag records with the tenant being served, or the platform console"""

    def filter(self, record):
        record.tenant = tenant_label(get_current_tenant(), get_current_request())
        return True


class RequestContextFilter(logging.Filter):
    """Tag records with who made the request; background work logs as 'system'"""

    def filter(self, record):
        request = get_current_request()
        if request is None:
            record.user = 'system'
            record.path = record.method = record.ip = 'N/A'
            return True

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            record.user = f"{user.username}#{user.pk}"
        else:
            record.user = 'anonymous'
        record.path = request.path
        record.method = request.method
        record.ip = get_client_ip(request)
        return True
