"""
URL configuration for bookings app.

Routes:
    /api/v1/bookings/                  BookingViewSet
    /api/v1/bookings/{id}/cancel/      BookingViewSet.cancel
    /api/v1/bookings/{id}/requote/     BookingViewSet.requote
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from bookings.views import BookingViewSet

app_name = "bookings"

router = SimpleRouter()
router.register(r"", BookingViewSet, basename="booking")

urlpatterns = [
    path("", include(router.urls)),
]
