from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import ClientViewSet

router = SimpleRouter()

# - /api/clients/{id}/statement/ (GET)
# - /api/clients/{id}/top-up/ (POST)
# - /api/clients/{id}/sales/ (POST)
router.register(r'clients', ClientViewSet, basename='client')

urlpatterns = [
    path('', include(router.urls)),
]
