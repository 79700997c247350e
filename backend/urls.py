"""
Main URL Configuration - Multi-Tenant Credit Ledger
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

from core.views import HealthCheckView, RateLimitExceededView

urlpatterns = [
    # ============================================================================
    # 1. ADMIN INTERFACE
    # ============================================================================
    path('admin/', admin.site.urls, name='admin'),

    # ============================================================================
    # 2. AUTH & RPC ENDPOINTS (tenant from body, token or profile)
    # ============================================================================
    path('api/', include('accounts.urls')),
    path('api/super-admin/', include('platform_admin.urls')),

    # ============================================================================
    # 3. API ENDPOINTS (Tenant-aware via middleware)
    # ============================================================================
    path('api/', include('clients.urls')),
    path('api/', include('products.urls')),
    path('api/', include('payments.urls')),
    path('api/', include('notifications.urls')),

    # ============================================================================
    # 4. HEALTH & MONITORING (No tenant required)
    # ============================================================================
    path('health/', HealthCheckView.as_view(), name='health_check'),
    path('health/ready/', HealthCheckView.as_view(), name='health_ready'),
    path('health/live/', HealthCheckView.as_view(liveness_only=True), name='health_live'),

    # ============================================================================
    # 5. ERROR HANDLERS
    # ============================================================================
    path('rate-limit-exceeded/', RateLimitExceededView.as_view(), name='rate_limit_exceeded'),
]

# ============================================================================
# ERROR HANDLING (Django will use these automatically)
# ============================================================================
handler400 = 'core.views.bad_request_view'
handler403 = 'core.views.permission_denied_view'
handler404 = 'core.views.page_not_found_view'
handler500 = 'core.views.server_error_view'

# ============================================================================
# DEVELOPMENT ONLY
# ============================================================================
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
