"""
Product API URL Configuration
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ProductViewSet

app_name = 'products'

router = DefaultRouter()

# - /api/products/ (list, create; ?search=, ?ordering=price)
# - /api/products/{id}/ (retrieve, update, delete)
router.register(r'products', ProductViewSet, basename='product')

urlpatterns = [
    path('', include(router.urls)),
]
