from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rides_api.views import DriverViewSet, RideViewSet, estimate_fare_view, smart_matching_view

router = DefaultRouter()
router.register(r'rides', RideViewSet, basename='ride')
router.register(r'drivers', DriverViewSet, basename='driver')

urlpatterns = [
    path('api/v1/', include(router.urls)),
    path('api/v1/fares/estimate/', estimate_fare_view, name='fare-estimate'),
    path('api/v1/matching/', smart_matching_view, name='smart-matching'),
]
