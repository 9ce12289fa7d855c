"""
URL configuration for the payments app.

Routes:
    - /fees/preview/          FeePreviewView
    - /earnings/summary/      EarningsSummaryView
    - /earnings/history/      EarningsHistoryView
    - /, /{id}/, /{id}/verify/, /{id}/release/, /{id}/fail/  PaymentViewSet

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from payments.views import (
    EarningsHistoryView,
    EarningsSummaryView,
    FeePreviewView,
    PaymentViewSet,
)

app_name = "payments"

router = SimpleRouter()
router.register(r"", PaymentViewSet, basename="payment")

urlpatterns = [
    path("fees/preview/", FeePreviewView.as_view(), name="fee-preview"),
    path("earnings/summary/", EarningsSummaryView.as_view(), name="earnings-summary"),
    path("earnings/history/", EarningsHistoryView.as_view(), name="earnings-history"),
    path("", include(router.urls)),
]
