"""
Domain errors, raised by services and rendered by DRF's exception handler
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class TenantAccessDenied(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have access to this tenant."
    default_code = 'tenant_access_denied'


class PlanLimitExceeded(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Your subscription plan limit has been reached."
    default_code = 'plan_limit_exceeded'


class OverpaymentRejected(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment exceeds the remaining invoice balance."
    default_code = 'overpayment_rejected'


class ProvisioningError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to create client user."
    default_code = 'provisioning_failed'

    def __init__(self, detail=None, code=None, step=None):
        super().__init__(detail, code)
        self.step = step


class DatabaseUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service temporarily unavailable. Please try again."
    default_code = 'database_unavailable'
