# apps/refunds/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from apps.refunds.views import RefundRequestViewSet, RefundViewSet

router = DefaultRouter()
router.register(r"refund-requests", RefundRequestViewSet, basename="refund-requests")
router.register(r"refunds", RefundViewSet, basename="refunds")

app_name = "refunds"

urlpatterns = [
    path("", include(router.urls)),
]
