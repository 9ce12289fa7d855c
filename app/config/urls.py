"""
URL configuration for the booking and escrow service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (username/password)
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/bookings/              - Booking endpoints
        {id}/                      - Booking detail
        {id}/cancel/               - Cancel unfunded booking
        {id}/requote/              - Change quoted price
    /api/v1/payments/              - Payment endpoints
        {id}/                      - Payment detail
        {id}/verify/               - Verify payment (staff)
        {id}/release/              - Release escrow
        {id}/fail/                 - Fail payment (staff)
        fees/preview/              - Fee breakdown for an amount
        earnings/summary/          - Provider earnings for a period
        earnings/history/          - Provider payment history

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Bookings
    path("bookings/", include("bookings.urls")),
    # Payments
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Bookings Admin"
admin.site.site_title = "Bookings Admin Portal"
admin.site.index_title = "Bookings, payments and payouts"
