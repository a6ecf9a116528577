# apps/refunds/views.py

from typing import ClassVar

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import (OpenApiResponse, extend_schema,
                                   extend_schema_view)
from rest_framework import filters, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsAdminRole, IsCustomer, IsVendorOrAdmin
from apps.core.pagination import StandardResultsSetPagination
from apps.core.throttling import PaymentRateThrottle
from apps.core.views import BaseViewSet
from apps.payments.gateway import get_gateway_client
from apps.refunds.filters import RefundFilter, RefundRequestFilter
from apps.refunds.models import Refund, RefundRequest
from apps.refunds.serializers import (RefundBulkResultSerializer,
                                      RefundBulkStatusSerializer,
                                      RefundInitiateSerializer,
                                      RefundRequestCreateSerializer,
                                      RefundRequestDecisionSerializer,
                                      RefundRequestNotesSerializer,
                                      RefundRequestRejectSerializer,
                                      RefundRequestSerializer,
                                      RefundSerializer,
                                      RefundStatusNotesSerializer)
from apps.refunds.services import RefundService

logger = structlog.get_logger(__name__)


@extend_schema_view(
    list=extend_schema(summary="List refund requests"),
    retrieve=extend_schema(summary="Get refund request"),
    create=extend_schema(
        summary="Request refund",
        description="Ask for a refund on a delivered order.",
        request=RefundRequestCreateSerializer,
        responses={
            201: RefundRequestSerializer,
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Not delivered or already requested"),
        },
    ),
    destroy=extend_schema(
        summary="Delete refund request",
        description="Delete a rejected refund request (admin only).",
        responses={204: OpenApiResponse(description="Refund request deleted")},
    ),
)
@extend_schema(tags=["Refunds"])
class RefundRequestViewSet(BaseViewSet):
    serializer_class = RefundRequestSerializer
    permission_classes: ClassVar[list] = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends: ClassVar[list] = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = RefundRequestFilter
    ordering_fields: ClassVar[list] = ["created_at", "status"]
    ordering: ClassVar[list] = ["-created_at"]
    queryset = RefundRequest.objects.none()

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return RefundRequest.objects.none()
        return RefundRequest.objects.visible_to(self.request.user).select_related(
            "order", "customer", "vendor"
        )

    def get_permissions(self):
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsCustomer()]
        if self.action in ("approve", "reject", "notes"):
            return [permissions.IsAuthenticated(), IsVendorOrAdmin()]
        if self.action == "destroy":
            return [permissions.IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    @property
    def service(self) -> RefundService:
        return RefundService(self.request.user)

    def _request_response(self, refund_request, action_name, response_status=status.HTTP_200_OK):
        self.log_action(
            action_name,
            extra_data={
                "refund_request_id": str(refund_request.pk),
                "status": refund_request.status,
            },
        )
        refund_request = self.get_queryset().get(pk=refund_request.pk)
        return Response(
            RefundRequestSerializer(refund_request, context={"request": self.request}).data,
            status=response_status,
        )

    def create(self, request, *args, **kwargs):
        serializer = RefundRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund_request = self.service.request(**serializer.validated_data)
        return self._request_response(
            refund_request, "refund_requested", status.HTTP_201_CREATED
        )

    def destroy(self, request, pk=None):
        self.service.delete_request(pk)
        self.log_action("refund_request_deleted", extra_data={"refund_request_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=RefundRequestDecisionSerializer,
        responses={
            200: RefundRequestSerializer,
            409: OpenApiResponse(description="Already processed"),
        },
        summary="Approve refund request",
    )
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        serializer = RefundRequestDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund_request = self.service.approve(pk, **serializer.validated_data)
        return self._request_response(refund_request, "refund_request_approved")

    @extend_schema(
        request=RefundRequestRejectSerializer,
        responses={
            200: RefundRequestSerializer,
            409: OpenApiResponse(description="Already processed"),
        },
        summary="Reject refund request",
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = RefundRequestRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund_request = self.service.reject(pk, **serializer.validated_data)
        return self._request_response(refund_request, "refund_request_rejected")

    @extend_schema(
        request=RefundRequestNotesSerializer,
        responses={200: RefundRequestSerializer},
        summary="Update refund request notes",
    )
    @action(detail=True, methods=["patch"])
    def notes(self, request, pk=None):
        serializer = RefundRequestNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund_request = self.service.update_notes(
            pk, serializer.validated_data["admin_notes"]
        )
        return self._request_response(refund_request, "refund_request_notes_updated")


@extend_schema_view(
    list=extend_schema(summary="List refunds"),
    retrieve=extend_schema(summary="Get refund"),
    destroy=extend_schema(
        summary="Delete refund",
        description="Delete a failed refund (admin only).",
        responses={204: OpenApiResponse(description="Refund deleted")},
    ),
)
@extend_schema(tags=["Refunds"])
class RefundViewSet(BaseViewSet):
    serializer_class = RefundSerializer
    permission_classes: ClassVar[list] = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends: ClassVar[list] = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = RefundFilter
    ordering_fields: ClassVar[list] = ["created_at", "status", "amount"]
    ordering: ClassVar[list] = ["-created_at"]
    queryset = Refund.objects.none()

    ADMIN_ACTIONS = ("complete", "fail", "bulk_status", "destroy")

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Refund.objects.none()
        return Refund.objects.visible_to(self.request.user).select_related(
            "order", "customer"
        )

    def get_permissions(self):
        if self.action == "initiate":
            return [permissions.IsAuthenticated(), IsCustomer()]
        if self.action in self.ADMIN_ACTIONS:
            return [permissions.IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def get_throttles(self):
        if self.action in ("initiate", "retry"):
            return [PaymentRateThrottle()]
        return super().get_throttles()

    @property
    def service(self) -> RefundService:
        return RefundService(self.request.user, gateway=get_gateway_client())

    def _refund_response(self, refund, action_name, response_status=status.HTTP_200_OK):
        self.log_action(
            action_name,
            extra_data={
                "refund_id": str(refund.pk),
                "status": refund.status,
                "attempts": refund.attempts,
            },
        )
        refund = self.get_queryset().get(pk=refund.pk)
        return Response(
            RefundSerializer(refund, context={"request": self.request}).data,
            status=response_status,
        )

    def destroy(self, request, pk=None):
        self.service.delete(pk)
        self.log_action("refund_deleted", extra_data={"refund_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=RefundInitiateSerializer,
        responses={
            201: RefundSerializer,
            404: OpenApiResponse(description="Request or payment not found"),
            409: OpenApiResponse(description="Not accepted or already initiated"),
            502: OpenApiResponse(description="Gateway error"),
        },
        summary="Initiate refund",
        description="Settle an accepted refund request against the original payment.",
    )
    @action(detail=False, methods=["post"])
    def initiate(self, request):
        serializer = RefundInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        refund = self.service.initiate(
            data["refund_request_id"],
            data["gateway_payment_id"],
            refund_method=data["refund_method"],
        )
        return self._refund_response(refund, "refund_initiated", status.HTTP_201_CREATED)

    @extend_schema(
        request=None,
        responses={
            200: RefundSerializer,
            409: OpenApiResponse(description="Refund is not failed"),
            502: OpenApiResponse(description="Gateway error"),
        },
        summary="Retry failed refund",
    )
    @action(detail=True, methods=["post"])
    def retry(self, request, pk=None):
        return self._refund_response(self.service.retry(pk), "refund_retried")

    @extend_schema(
        request=RefundStatusNotesSerializer,
        responses={200: RefundSerializer, 409: OpenApiResponse(description="Invalid transition")},
        summary="Complete refund (admin)",
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        serializer = RefundStatusNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = self.service.complete(pk, serializer.validated_data.get("notes"))
        return self._refund_response(refund, "refund_completed")

    @extend_schema(
        request=RefundStatusNotesSerializer,
        responses={200: RefundSerializer, 409: OpenApiResponse(description="Invalid transition")},
        summary="Fail refund (admin)",
    )
    @action(detail=True, methods=["post"])
    def fail(self, request, pk=None):
        serializer = RefundStatusNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = self.service.fail(pk, serializer.validated_data.get("notes"))
        return self._refund_response(refund, "refund_failed")

    @extend_schema(
        request=RefundBulkStatusSerializer,
        responses={200: RefundBulkResultSerializer},
        summary="Bulk update refund status (admin)",
    )
    @action(detail=False, methods=["post"])
    def bulk_status(self, request):
        serializer = RefundBulkStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.service.bulk_status(
            data["refund_ids"], data["status"], data.get("notes")
        )
        self.log_action(
            "refunds_bulk_status",
            extra_data={
                "status": data["status"],
                "updated": len(result["updated"]),
                "skipped": len(result["skipped"]),
            },
        )
        return Response(result)
