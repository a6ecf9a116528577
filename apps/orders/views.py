# apps/orders/views.py

"""
Views for carts and orders.
Every state change is a named action delegating to ``OrderService``.
"""

from typing import ClassVar

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (OpenApiParameter, OpenApiResponse,
                                   extend_schema, extend_schema_view)
from rest_framework import filters, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsCustomer
from apps.core.pagination import StandardResultsSetPagination
from apps.core.views import BaseViewSet
from apps.orders.filters import OrderFilter
from apps.orders.models import Cart, Order
from apps.orders.serializers import (AddToCartSerializer, CartSerializer,
                                     OrderAddressUpdateSerializer,
                                     OrderCancelSerializer,
                                     OrderCreateSerializer, OrderSerializer,
                                     OrderShipmentSerializer,
                                     OrderSummarySerializer,
                                     OrderTimelineSerializer,
                                     OrderTrackingUpdateSerializer,
                                     ReorderSerializer,
                                     UpdateCartItemSerializer)
from apps.orders.services import CartService, OrderService
from apps.orders.utils import InventoryManager

logger = structlog.get_logger(__name__)

PRODUCT_ID_PARAMETER = OpenApiParameter(
    name="product_id",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.PATH,
    description="Product ID of the cart line",
)


@extend_schema(tags=["Cart"])
class CartViewSet(BaseViewSet):
    """
    The authenticated customer's cart.
    """

    serializer_class = CartSerializer
    permission_classes: ClassVar[list] = [permissions.IsAuthenticated, IsCustomer]
    pagination_class = None
    queryset = Cart.objects.none()

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Cart.objects.none()
        return Cart.objects.filter(user=self.request.user)

    def _cart_response(self, cart, log_name, extra=None):
        self.log_action(log_name, extra_data=extra)
        return Response(CartSerializer(cart, context={"request": self.request}).data)

    @extend_schema(
        summary="Get cart",
        responses={
            200: CartSerializer,
            401: OpenApiResponse(description="Authentication required"),
            403: OpenApiResponse(description="Customers only"),
        },
    )
    def list(self, request, *args, **kwargs):
        return Response(CartSerializer(CartService(request.user).cart).data)

    @extend_schema(
        request=AddToCartSerializer,
        responses={
            200: CartSerializer,
            404: OpenApiResponse(description="Product not found"),
            409: OpenApiResponse(description="Product unavailable or out of stock"),
        },
        summary="Add item to cart",
        description="Add a product to the cart or increase its quantity.",
    )
    @action(detail=False, methods=["post"])
    def add_item(self, request):
        serializer = AddToCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        cart = CartService(request.user).add_item(data["product_id"], data["quantity"])
        return self._cart_response(
            cart,
            "cart_item_added",
            {"product_id": str(data["product_id"]), "quantity": data["quantity"]},
        )

    @extend_schema(
        methods=["PATCH"],
        request=UpdateCartItemSerializer,
        parameters=[PRODUCT_ID_PARAMETER],
        responses={200: CartSerializer, 404: OpenApiResponse(description="Not in cart")},
        summary="Update cart item quantity",
        description="Set the quantity of a cart line. Quantity 0 removes the line.",
    )
    @extend_schema(
        methods=["DELETE"],
        parameters=[PRODUCT_ID_PARAMETER],
        responses={200: CartSerializer, 404: OpenApiResponse(description="Not in cart")},
        summary="Remove item from cart",
    )
    @action(
        detail=False,
        methods=["patch", "delete"],
        url_path=r"items/(?P<product_id>[0-9a-f-]+)",
    )
    def item(self, request, product_id=None):
        service = CartService(request.user)
        if request.method == "DELETE":
            cart = service.remove_item(product_id)
            return self._cart_response(cart, "cart_item_removed", {"product_id": product_id})

        serializer = UpdateCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quantity = serializer.validated_data["quantity"]
        cart = service.set_quantity(product_id, quantity)
        return self._cart_response(
            cart, "cart_item_updated", {"product_id": product_id, "quantity": quantity}
        )

    @extend_schema(responses={200: CartSerializer}, summary="Clear cart")
    @action(detail=False, methods=["post", "delete"])
    def clear(self, request):
        cart = CartService(request.user).clear()
        return self._cart_response(cart, "cart_cleared")

    @extend_schema(
        summary="Check cart availability",
        description="Report whether every cart line can still be served.",
    )
    @action(detail=False, methods=["get"])
    def check_availability(self, request):
        items = CartService(request.user).cart.list_items()
        return Response(InventoryManager.check_availability(items))


@extend_schema_view(
    list=extend_schema(
        summary="List orders",
        description=(
            "Customers see their own orders, vendors the orders they fulfil "
            "and administrators every order."
        ),
        responses={
            200: OrderSummarySerializer(many=True),
            401: OpenApiResponse(description="Authentication required"),
        },
    ),
    retrieve=extend_schema(
        summary="Get order details",
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Order not found"),
        },
    ),
    create=extend_schema(
        summary="Place order",
        description=(
            "Place one order per vendor from the given items, or from the cart "
            "when no items are supplied."
        ),
        request=OrderCreateSerializer,
        responses={
            201: OrderSerializer(many=True),
            400: OpenApiResponse(description="Invalid input"),
            403: OpenApiResponse(description="Customers only"),
            409: OpenApiResponse(description="Out of stock or product unavailable"),
        },
    ),
    destroy=extend_schema(
        summary="Delete order",
        description="Delete a cancelled order (admin only).",
        responses={
            204: OpenApiResponse(description="Order deleted"),
            403: OpenApiResponse(description="Admin permission required"),
            409: OpenApiResponse(description="Order is not cancelled"),
        },
    ),
)
@extend_schema(tags=["Orders"])
class OrderViewSet(BaseViewSet):
    """
    ViewSet for orders. Field changes happen only through the named actions.
    """

    serializer_class = OrderSerializer
    permission_classes: ClassVar[list] = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filter_backends: ClassVar[list] = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]
    filterset_class = OrderFilter
    search_fields: ClassVar[list] = ["order_number", "shipping_full_name"]
    ordering_fields: ClassVar[list] = ["created_at", "total_amount", "status"]
    ordering: ClassVar[list] = ["-created_at"]
    queryset = Order.objects.none()

    def get_queryset(self):
        """Role scope first; filters apply on top of it."""
        if getattr(self, "swagger_fake_view", False):
            return Order.objects.none()
        return Order.objects.visible_to(self.request.user).with_details()

    def get_serializer_class(self):
        if self.action == "list":
            return OrderSummarySerializer
        return OrderSerializer

    @property
    def service(self) -> OrderService:
        return OrderService(self.request.user)

    def _order_response(self, order, action_name, extra=None):
        self.log_action(
            action_name,
            extra_data={
                "order_id": str(order.pk),
                "order_number": order.order_number,
                "status": order.status,
                **(extra or {}),
            },
        )
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order, context={"request": self.request}).data)

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        orders = self.service.place_orders(**serializer.validated_data)

        self.log_action(
            "orders_placed",
            extra_data={"order_numbers": [order.order_number for order in orders]},
        )
        data = OrderSerializer(orders, many=True, context={"request": request}).data
        return Response({"orders": data}, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        self.service.delete(pk)
        self.log_action("order_deleted", extra_data={"order_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=None,
        responses={
            200: OrderSerializer,
            403: OpenApiResponse(description="Vendors or administrators only"),
            409: OpenApiResponse(description="Invalid transition"),
        },
        summary="Confirm order",
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        return self._order_response(self.service.confirm(pk), "order_confirmed")

    @extend_schema(
        request=None,
        responses={200: OrderSerializer, 409: OpenApiResponse(description="Invalid transition")},
        summary="Start processing order",
    )
    @action(detail=True, methods=["post"])
    def process(self, request, pk=None):
        return self._order_response(self.service.process(pk), "order_processing")

    @extend_schema(
        request=OrderShipmentSerializer,
        responses={200: OrderSerializer, 409: OpenApiResponse(description="Invalid transition")},
        summary="Ship order",
        description="Mark the order as shipped with optional tracking details.",
    )
    @action(detail=True, methods=["post"])
    def ship(self, request, pk=None):
        serializer = OrderShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self.service.ship(pk, **serializer.validated_data)
        return self._order_response(
            order,
            "order_shipped",
            {"carrier": order.carrier, "tracking_number": order.tracking_number},
        )

    @extend_schema(
        request=None,
        responses={
            200: OrderSerializer,
            409: OpenApiResponse(description="Not shipped or not paid"),
        },
        summary="Mark order as delivered",
    )
    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        return self._order_response(self.service.deliver(pk), "order_delivered")

    @extend_schema(
        request=OrderCancelSerializer,
        responses={200: OrderSerializer, 409: OpenApiResponse(description="Invalid transition")},
        summary="Cancel order",
        description=(
            "Cancel an order and restore its stock. Customers may only cancel "
            "pending orders."
        ),
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data["reason"]
        order = self.service.cancel(pk, reason=reason)
        return self._order_response(order, "order_cancelled", {"reason": reason})

    @extend_schema(
        request=OrderTrackingUpdateSerializer,
        responses={200: OrderSerializer, 409: OpenApiResponse(description="Not shipped")},
        summary="Update tracking details",
    )
    @action(detail=True, methods=["patch"])
    def tracking(self, request, pk=None):
        serializer = OrderTrackingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self.service.update_tracking(pk, **serializer.validated_data)
        return self._order_response(order, "order_tracking_updated")

    @extend_schema(
        request=OrderAddressUpdateSerializer,
        responses={200: OrderSerializer, 409: OpenApiResponse(description="Not pending")},
        summary="Update order addresses",
    )
    @action(detail=True, methods=["patch"])
    def address(self, request, pk=None):
        serializer = OrderAddressUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self.service.update_address(
            pk,
            serializer.validated_data.get("shipping_address"),
            serializer.validated_data.get("billing_address"),
        )
        return self._order_response(order, "order_address_updated")

    @extend_schema(
        request=ReorderSerializer,
        responses={201: OrderSerializer(many=True)},
        summary="Reorder",
        description="Place the items of this order again at current prices.",
    )
    @action(detail=True, methods=["post"])
    def reorder(self, request, pk=None):
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orders = self.service.reorder(
            pk, shipping_address=serializer.validated_data.get("shipping_address")
        )
        self.log_action(
            "order_reordered",
            extra_data={
                "source_order_id": pk,
                "order_numbers": [order.order_number for order in orders],
            },
        )
        data = OrderSerializer(orders, many=True, context={"request": request}).data
        return Response({"orders": data}, status=status.HTTP_201_CREATED)

    @extend_schema(
        responses={200: OrderTimelineSerializer(many=True)},
        summary="Order timeline",
    )
    @action(detail=True, methods=["get"])
    def timeline(self, request, pk=None):
        order = self.get_object()
        return Response(OrderTimelineSerializer(order.get_timeline(), many=True).data)
