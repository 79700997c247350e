import logging

from rest_framework.exceptions import ParseError
from rest_framework.permissions import BasePermission, IsAuthenticated
from rest_framework.response import Response

from core.utils import get_client_ip
from core.views import FunctionAPIView

from .actions import AdminContext, run_action
from .models import SuperAdmin

logger = logging.getLogger(__name__)


class IsActiveSuperAdmin(BasePermission):
    message = "Access denied: Not a super admin"

    def has_permission(self, request, view):
        admin = SuperAdmin.objects.filter(user=request.user, is_active=True).first()
        if admin is None:
            logger.warning(f"User {request.user.pk} is not an active super admin")
            return False
        request.super_admin = admin
        return True


class SuperAdminView(FunctionAPIView):
    """
    POST /api/super-admin/ {"action": "...", "data": {...}}
    Platform console: tenant lifecycle, plans, feature flags, operators
    """
    permission_classes = [IsAuthenticated, IsActiveSuperAdmin]

    def post(self, request):
        action = request.data.get('action')
        if not action:
            raise ParseError("action is required")

        data = request.data.get('data') or {}
        if not isinstance(data, dict):
            raise ParseError("data must be an object")

        ctx = AdminContext(
            admin=request.super_admin,
            ip_address=get_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
        )
        return Response({'data': run_action(ctx, action, data)})
