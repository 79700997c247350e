"""
Core Views - Health Checks and Error Handling
"""
import logging

from django.conf import settings
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from django.utils import timezone
from django.views import View
from rest_framework.exceptions import ValidationError
from rest_framework.views import APIView

logger = logging.getLogger(__name__)


class HealthCheckView(View):
    """
    Database + cache health check. `/health/live/` only reports that the
    process is serving requests.
    """
    liveness_only = False

    def get(self, request):
        if self.liveness_only:
            return JsonResponse({'status': 'healthy', 'timestamp': timezone.now().isoformat()})

        checks = {}

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            checks['database'] = {'status': 'healthy'}
        except Exception as e:
            logger.error(f"Health check database error: {str(e)}")
            checks['database'] = {'status': 'unhealthy', 'error': str(e)}

        try:
            cache.set('health_check', 'ok', 1)
            if cache.get('health_check') == 'ok':
                checks['cache'] = {'status': 'healthy'}
            else:
                checks['cache'] = {'status': 'unhealthy', 'error': 'Cache not working'}
        except Exception as e:
            logger.error(f"Health check cache error: {str(e)}")
            checks['cache'] = {'status': 'unhealthy', 'error': str(e)}

        checks['sms'] = {
            'status': 'configured' if settings.SMS.get('API_KEY') and settings.SMS.get('USERNAME')
            else 'not_configured'
        }

        all_healthy = all(
            checks[name]['status'] == 'healthy' for name in ('database', 'cache')
        )

        response = {
            'status': 'healthy' if all_healthy else 'unhealthy',
            'timestamp': timezone.now().isoformat(),
            'checks': checks
        }

        return JsonResponse(response, status=200 if all_healthy else 503)


class RateLimitExceededView(View):
    """
    Custom view for rate limit exceeded errors
    """

    def dispatch(self, request, *args, **kwargs):
        return JsonResponse(
            {
                "detail": "Rate limit exceeded. Please try again later.",
                "code": "rate_limit_exceeded"
            },
            status=429
        )


# ============================================================================
# ERROR HANDLERS (Called automatically by Django)
# ============================================================================

def bad_request_view(request, exception=None):
    """400 Bad Request"""
    return JsonResponse({"detail": "Bad request.", "code": "bad_request"}, status=400)


def permission_denied_view(request, exception=None):
    """403 Forbidden"""
    return JsonResponse({"detail": "Permission denied.", "code": "permission_denied"}, status=403)


def page_not_found_view(request, exception=None):
    """404 Not Found"""
    return JsonResponse(
        {
            "detail": "Resource not found.",
            "code": "not_found",
            "path": request.path
        },
        status=404
    )


def server_error_view(request, exception=None):
    """500 Internal Server Error"""
    if settings.DEBUG and exception:
        error_detail = str(exception)
    else:
        error_detail = "Internal server error"

    return JsonResponse({"detail": error_detail, "code": "server_error"}, status=500)


def csrf_failure(request, reason=""):
    """Custom JSON response for CSRF failures"""
    return JsonResponse(
        {
            "detail": "CSRF verification failed. Request aborted.",
            "code": "csrf_failure",
            "reason": reason,
        },
        status=403
    )


class FunctionAPIView(APIView):
    """
    Base for the RPC-style endpoints (`/api/functions/`, `/api/super-admin/`).
    Errors are rendered as {"error": ...} instead of DRF's {"detail": ...}.
    """

    def handle_exception(self, exc):
        response = super().handle_exception(exc)
        if isinstance(exc, ValidationError):
            response.data = {'error': 'Invalid input data', 'details': response.data}
        elif isinstance(response.data, dict) and 'detail' in response.data:
            response.data = {'error': str(response.data['detail'])}
        return response
