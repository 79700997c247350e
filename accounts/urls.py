from django.urls import path

from .views import (
    CreateClientUserView,
    LoginView,
    MeView,
    ResetPasswordView,
    ResolveLoginEmailView,
    SendTransactionSmsView,
    SignupView,
)

urlpatterns = [
    # Auth (no tenant required)
    path('auth/login/', LoginView.as_view(), name='auth-login'),
    path('auth/signup/', SignupView.as_view(), name='auth-signup'),
    path('auth/me/', MeView.as_view(), name='auth-me'),
    path('auth/resolve-login-email/', ResolveLoginEmailView.as_view(), name='resolve-login-email'),
    path('auth/reset-password/', ResetPasswordView.as_view(), name='reset-password'),

    # RPC endpoints, tenant taken from the body / the caller's profile
    path('functions/create-client-user/', CreateClientUserView.as_view(), name='create-client-user'),
    path('functions/send-transaction-sms/', SendTransactionSmsView.as_view(), name='send-transaction-sms'),
]
