# apps/payments/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from apps.payments.views import PaymentViewSet

router = DefaultRouter()
router.register(r"payments", PaymentViewSet, basename="payments")

app_name = "payments"

urlpatterns = [
    path("", include(router.urls)),
]
