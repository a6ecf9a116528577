# apps/payments/views.py

"""
Payment endpoints. Checkout, callbacks and admin corrections are named actions
delegating to ``PaymentService``; list and retrieve are role scoped.
"""

from typing import ClassVar

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import (OpenApiResponse, extend_schema,
                                   extend_schema_view)
from rest_framework import filters, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsAdminRole, IsCustomer
from apps.core.pagination import StandardResultsSetPagination
from apps.core.throttling import PaymentRateThrottle
from apps.core.views import BaseViewSet
from apps.payments.filters import PaymentFilter
from apps.payments.gateway import get_gateway_client
from apps.payments.models import Payment
from apps.payments.serializers import (PaymentAdminUpdateSerializer,
                                       PaymentCheckoutSerializer,
                                       PaymentFailSerializer,
                                       PaymentInitiateSerializer,
                                       PaymentSerializer,
                                       PaymentVerifySerializer)
from apps.payments.services import PaymentService

logger = structlog.get_logger(__name__)


@extend_schema_view(
    list=extend_schema(
        summary="List payments",
        description=(
            "Customers see their own payments, vendors the payments on their "
            "orders and administrators every payment."
        ),
    ),
    retrieve=extend_schema(
        summary="Get payment details",
        responses={200: PaymentSerializer, 404: OpenApiResponse(description="Not found")},
    ),
    destroy=extend_schema(
        summary="Delete payment",
        description="Delete a payment that is not completed (admin only).",
        responses={
            204: OpenApiResponse(description="Payment deleted"),
            409: OpenApiResponse(description="Completed payment or refunds exist"),
        },
    ),
)
@extend_schema(tags=["Payments"])
class PaymentViewSet(BaseViewSet):
    serializer_class = PaymentSerializer
    permission_classes: ClassVar[list] = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends: ClassVar[list] = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = PaymentFilter
    ordering_fields: ClassVar[list] = ["created_at", "total_amount", "status"]
    ordering: ClassVar[list] = ["-created_at"]
    queryset = Payment.objects.none()

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Payment.objects.none()
        return Payment.objects.visible_to(self.request.user).select_related(
            "order", "customer"
        )

    def get_permissions(self):
        if self.action in ("initiate", "verify", "fail"):
            return [permissions.IsAuthenticated(), IsCustomer()]
        if self.action in ("admin_update", "destroy"):
            return [permissions.IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def get_throttles(self):
        if self.action in ("initiate", "verify", "fail"):
            return [PaymentRateThrottle()]
        return super().get_throttles()

    @property
    def service(self) -> PaymentService:
        return PaymentService(self.request.user, gateway=get_gateway_client())

    def _payment_response(self, payment, action_name, extra=None):
        self.log_action(
            action_name,
            extra_data={
                "payment_id": str(payment.pk),
                "order_id": str(payment.order_id),
                "status": payment.status,
                **(extra or {}),
            },
        )
        payment = self.get_queryset().get(pk=payment.pk)
        return Response(PaymentSerializer(payment, context={"request": self.request}).data)

    def destroy(self, request, pk=None):
        self.service.delete(pk)
        self.log_action("payment_deleted", extra_data={"payment_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=PaymentInitiateSerializer,
        responses={
            201: PaymentCheckoutSerializer,
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Order cancelled or already paid"),
            502: OpenApiResponse(description="Gateway error"),
        },
        summary="Initiate payment",
        description="Create a pending payment and the matching gateway order.",
    )
    @action(detail=False, methods=["post"])
    def initiate(self, request):
        serializer = PaymentInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        checkout = self.service.initiate(
            data["order_id"], data["method"], amount=data.get("amount")
        )
        self.log_action(
            "payment_initiated",
            extra_data={
                "payment_id": checkout["payment_id"],
                "gateway_order_id": checkout["gateway_order_id"],
            },
        )
        return Response(checkout, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=PaymentVerifySerializer,
        responses={
            200: PaymentSerializer,
            400: OpenApiResponse(description="Signature mismatch"),
            409: OpenApiResponse(description="Order already paid"),
        },
        summary="Verify payment",
        description="Check the gateway signature and settle the payment and its order.",
    )
    @action(detail=False, methods=["post"])
    def verify(self, request):
        serializer = PaymentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = self.service.verify(**serializer.validated_data)
        return self._payment_response(payment, "payment_verified")

    @extend_schema(
        request=PaymentFailSerializer,
        responses={200: PaymentSerializer, 409: OpenApiResponse(description="Not pending")},
        summary="Report failed payment",
    )
    @action(detail=False, methods=["post"])
    def fail(self, request):
        serializer = PaymentFailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = self.service.fail(
            data["gateway_order_id"],
            reason=data.get("reason", ""),
            gateway_payment_id=data.get("gateway_payment_id") or None,
        )
        return self._payment_response(payment, "payment_failed")

    @extend_schema(
        request=PaymentAdminUpdateSerializer,
        responses={200: PaymentSerializer},
        summary="Update payment (admin)",
        description="Set a payment's status and notes. The order is not changed.",
    )
    @action(detail=True, methods=["patch", "post"])
    def admin_update(self, request, pk=None):
        serializer = PaymentAdminUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = self.service.admin_update(
            pk,
            serializer.validated_data["status"],
            serializer.validated_data.get("admin_notes"),
        )
        return self._payment_response(payment, "payment_admin_updated")
