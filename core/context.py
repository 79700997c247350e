"""
Explicit tenant context passed from views into service functions.
"""
from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import TenantAccessDenied
from .models import Tenant


@dataclass(frozen=True)
class TenantContext:
    tenant: Tenant
    user: Optional[Any] = None

    @property
    def tenant_id(self):
        return self.tenant.pk

    @classmethod
    def from_request(cls, request):
        tenant = getattr(request, 'tenant', None)
        if tenant is None:
            raise TenantAccessDenied("Tenant context is missing.")
        user = request.user if request.user.is_authenticated else None
        return cls(tenant=tenant, user=user)
