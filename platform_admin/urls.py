from django.urls import path

from .views import SuperAdminView

urlpatterns = [
    path('', SuperAdminView.as_view(), name='super-admin'),
]
