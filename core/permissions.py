# core/permissions.py
import logging

from rest_framework.permissions import BasePermission

from accounts.models import Profile, UserRole

logger = logging.getLogger(__name__)

STAFF_ROLES = (UserRole.ROLE_ADMIN, UserRole.ROLE_USER)


def has_tenant_role(user, tenant, roles=None):
    """True if `user` has a profile in `tenant` and, when given, one of `roles`"""
    if not Profile.all_objects.filter(user=user, tenant=tenant).exists():
        return False
    if roles is None:
        return True
    return UserRole.objects.filter(user=user, role__in=roles).exists()


class IsTenantMember(BasePermission):
    """
    Authenticated user with a profile in request.tenant.
    Replaces the hosted platform's row-level policies at the API edge.
    """
    message = "You are not a member of this tenant."
    allowed_roles = None

    def has_permission(self, request, view):
        user = request.user
        tenant = getattr(request, 'tenant', None)
        if not (user and user.is_authenticated) or tenant is None:
            return False

        if not has_tenant_role(user, tenant, self.allowed_roles):
            logger.warning(
                f"User {user.pk} denied access to tenant {tenant.name}",
                extra={'tenant_id': str(tenant.pk)}
            )
            return False
        return True


class IsTenantStaff(IsTenantMember):
    """Business owner or employee of the tenant"""
    message = "Only tenant staff can perform this action."
    allowed_roles = STAFF_ROLES


class IsTenantClient(IsTenantMember):
    """A client logged into the self-service portal"""
    message = "Only client accounts can use the portal."
    allowed_roles = (UserRole.ROLE_CLIENT,)
