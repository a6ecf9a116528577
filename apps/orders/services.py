# apps/orders/services.py

"""
Order placement and the role-gated order lifecycle.

Every operation checks the caller's role first, then resolves the order
through the caller's scope (so other users' orders look missing), and only
then applies the state machine.
"""

from collections import OrderedDict
from decimal import Decimal

import structlog
from django.conf import settings
from django.db import transaction
from django.db.models import ProtectedError

from apps.accounts.models import Role
from apps.core.exceptions import (Forbidden, InvalidTransition, NotFound,
                                  OutOfStock, ProductUnavailable, Unauthorized,
                                  ValidationFailed)
from apps.core.utils import create_money_from_price, quantize_amount
from apps.orders.enums import OrderStatus
from apps.orders.models import Cart, Coupon, Order, OrderItem
from apps.orders.utils import InventoryManager, OrderCalculator
from apps.products.models import Product

logger = structlog.get_logger(__name__)


def merge_line_items(items: list[dict]) -> list[dict]:
    """Sum quantities of repeated products, keeping first-seen order."""
    merged = OrderedDict()
    for item in items:
        quantity = int(item.get("quantity", 0))
        if quantity < 1:
            raise ValidationFailed(
                "Quantity must be at least 1",
                details={"product_id": str(item.get("product_id"))},
            )
        key = str(item["product_id"])
        if key in merged:
            merged[key]["quantity"] += quantity
        else:
            merged[key] = {"product_id": item["product_id"], "quantity": quantity}
    return list(merged.values())


class CartService:
    """Cart mutations for one customer, checked against live stock."""

    def __init__(self, user):
        self.cart = Cart.objects.for_user(user)

    @staticmethod
    def _available_product(product_id, quantity: int) -> Product:
        product = Product.objects.filter(pk=product_id).first()
        if product is None:
            raise NotFound("Product not found", details={"product_id": str(product_id)})
        if not product.is_available:
            raise ProductUnavailable(
                f"{product.name} is not available",
                details={"product_id": str(product.pk)},
            )
        if not product.has_stock_for(quantity):
            raise OutOfStock(
                f"Only {product.stock_quantity} items available in stock",
                details={
                    "product_id": str(product.pk),
                    "requested_quantity": quantity,
                    "available_quantity": product.stock_quantity,
                },
            )
        return product

    def add_item(self, product_id, quantity: int) -> Cart:
        existing = self.cart.items.filter(product_id=product_id).first()
        wanted = quantity + (existing.quantity if existing else 0)
        product = self._available_product(product_id, wanted)
        self.cart.add_item(product, quantity)
        return self.cart

    def set_quantity(self, product_id, quantity: int) -> Cart:
        item = self.cart.items.filter(product_id=product_id).first()
        if item is None:
            raise NotFound("Item not found in cart", details={"product_id": str(product_id)})
        if quantity == 0:
            item.delete()
            return self.cart
        self._available_product(product_id, quantity)
        item.quantity = quantity
        item.save(update_fields=["quantity", "updated_at"])
        return self.cart

    def remove_item(self, product_id) -> Cart:
        if not self.cart.items.filter(product_id=product_id).exists():
            raise NotFound("Item not found in cart", details={"product_id": str(product_id)})
        self.cart.remove_item(product_id)
        return self.cart

    def clear(self) -> Cart:
        self.cart.clear()
        return self.cart


class OrderService:
    """
    Order operations on behalf of one authenticated principal.
    """

    def __init__(self, user):
        if user is None or not user.is_authenticated:
            raise Unauthorized()
        self.user = user
        self.role = user.role

    # Access helpers

    def require_role(self, *roles, message=None):
        if self.role not in roles:
            raise Forbidden(message)

    def scoped_orders(self):
        return Order.objects.visible_to(self.user)

    def get_order(self, order_id, for_update=False) -> Order:
        queryset = self.scoped_orders()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError) as e:
            raise NotFound("Order not found") from e

    # Placement

    def place_orders(
        self,
        shipping_address: dict,
        items: list[dict] | None = None,
        billing_address: dict | None = None,
        coupon_code: str = "",
        special_instructions: str = "",
        payment_reference: str = "",
    ) -> list[Order]:
        """
        Create one order per vendor from explicit line items or the cart.

        Orders and items are written first; stock is then taken per order with
        conditional updates. Any shortfall rolls the whole placement back.
        """
        self.require_role(Role.CUSTOMER, message="Only customers can place orders.")

        if not shipping_address:
            raise ValidationFailed("Shipping address is required")

        if not items:
            cart = Cart.objects.filter(user=self.user).first()
            items = cart.list_items() if cart else []
            if not items:
                raise ValidationFailed("No items to order: cart is empty")

        lines = self._price_lines(merge_line_items(items))
        coupon = self._resolve_coupon(coupon_code) if coupon_code else None

        by_vendor = OrderedDict()
        for line in lines:
            by_vendor.setdefault(line["product"].vendor_id, []).append(line)

        with transaction.atomic():
            orders = []
            coupon_applied = False
            for vendor_id, vendor_lines in by_vendor.items():
                subtotal = sum(
                    (line["line_total"] for line in vendor_lines), Decimal("0.00")
                )
                order_coupon = (
                    coupon if coupon and coupon.applies_to(vendor_id, subtotal) else None
                )
                coupon_applied = coupon_applied or order_coupon is not None
                orders.append(
                    self._create_order(
                        vendor_id,
                        vendor_lines,
                        subtotal,
                        order_coupon,
                        shipping_address,
                        billing_address,
                        special_instructions,
                        payment_reference,
                    )
                )

            if coupon and not coupon_applied:
                raise ValidationFailed(
                    "Coupon is not applicable to this order",
                    details={"coupon_code": coupon.code},
                )
            if coupon and not coupon.redeem():
                raise ValidationFailed("Coupon usage limit reached")

            for order in orders:
                InventoryManager.commit_order_stock(order)

            self._clear_cart_lines([line["product"].pk for line in lines])

        for order in orders:
            logger.info(
                f"Order created: {order.order_number}",
                order_id=str(order.pk),
                customer_id=str(self.user.pk),
                vendor_id=str(order.vendor_id),
                total_amount=str(order.total_amount.amount),
            )

        return list(Order.objects.with_details().filter(pk__in=[o.pk for o in orders]))

    def _price_lines(self, items: list[dict]) -> list[dict]:
        products = Product.all_objects.in_bulk([item["product_id"] for item in items])
        products = {str(pk): product for pk, product in products.items()}

        lines = []
        for item in items:
            product = products.get(str(item["product_id"]))
            quantity = item["quantity"]
            if product is None:
                raise NotFound(
                    "Product not found",
                    details={"product_id": str(item["product_id"])},
                )
            if not product.is_available:
                raise ProductUnavailable(
                    f"{product.name} is not available",
                    details={"product_id": str(product.pk)},
                )
            if not product.has_stock_for(quantity):
                raise OutOfStock(
                    f"Insufficient stock for {product.name}",
                    details={
                        "product_id": str(product.pk),
                        "requested_quantity": quantity,
                        "available_quantity": product.stock_quantity,
                    },
                )
            unit_price = quantize_amount(product.price)
            lines.append(
                {
                    "product": product,
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "line_total": quantize_amount(unit_price * quantity),
                }
            )
        return lines

    def _resolve_coupon(self, code: str) -> Coupon:
        coupon = Coupon.objects.usable().filter(code=code.strip().upper()).first()
        if coupon is None:
            raise ValidationFailed(
                "Invalid or expired coupon code", details={"coupon_code": code}
            )
        if coupon.is_exhausted:
            raise ValidationFailed(
                "Coupon usage limit reached", details={"coupon_code": code}
            )
        return coupon

    def _create_order(
        self,
        vendor_id,
        lines,
        subtotal,
        coupon,
        shipping_address,
        billing_address,
        special_instructions,
        payment_reference,
    ) -> Order:
        totals = OrderCalculator.calculate_order_totals(subtotal, coupon=coupon)
        currency = settings.DEFAULT_CURRENCY

        order = Order(
            customer=self.user,
            vendor_id=vendor_id,
            email=self.user.email,
            coupon_code=coupon.code if coupon else "",
            special_instructions=special_instructions or "",
            payment_reference=payment_reference or "",
            **{
                field: create_money_from_price(value, currency)
                for field, value in totals.items()
            },
        )
        order.set_addresses(shipping_address, billing_address)
        order.save()

        for line in lines:
            product = line["product"]
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                product_sku=product.sku,
                quantity=line["quantity"],
                unit_price=create_money_from_price(line["unit_price"], currency),
            )
        return order

    def _clear_cart_lines(self, product_ids) -> None:
        cart = Cart.objects.filter(user=self.user).first()
        if cart is not None:
            for product_id in product_ids:
                cart.remove_item(product_id)

    def reorder(self, order_id, shipping_address: dict | None = None) -> list[Order]:
        """Place the items of a previous order again at current prices."""
        self.require_role(Role.CUSTOMER, message="Only customers can reorder.")
        previous = self.get_order(order_id)
        items = [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in previous.items.all()
        ]
        billing = None if previous.billing_same_as_shipping else previous.get_billing_address()
        return self.place_orders(
            shipping_address=shipping_address or previous.get_shipping_address(),
            items=items,
            billing_address=billing,
            special_instructions=previous.special_instructions,
        )

    # Lifecycle

    def _fulfilment_order(self, order_id) -> Order:
        self.require_role(
            Role.VENDOR,
            Role.ADMIN,
            message="Only vendors or administrators can update fulfilment.",
        )
        return self.get_order(order_id, for_update=True)

    @transaction.atomic
    def confirm(self, order_id) -> Order:
        order = self._fulfilment_order(order_id)
        order.confirm()
        return order

    @transaction.atomic
    def process(self, order_id) -> Order:
        order = self._fulfilment_order(order_id)
        order.start_processing()
        return order

    @transaction.atomic
    def ship(
        self, order_id, carrier="", tracking_number="", estimated_delivery_date=None
    ) -> Order:
        order = self._fulfilment_order(order_id)
        order.ship(
            carrier=carrier,
            tracking_number=tracking_number,
            estimated_delivery_date=estimated_delivery_date,
        )
        return order

    @transaction.atomic
    def deliver(self, order_id) -> Order:
        order = self._fulfilment_order(order_id)
        order.deliver()
        return order

    @transaction.atomic
    def update_tracking(
        self, order_id, carrier="", tracking_number="", estimated_delivery_date=None
    ) -> Order:
        order = self._fulfilment_order(order_id)
        order.update_tracking(
            carrier=carrier,
            tracking_number=tracking_number,
            estimated_delivery_date=estimated_delivery_date,
        )
        return order

    @transaction.atomic
    def cancel(self, order_id, reason: str = "") -> Order:
        order = self.get_order(order_id, for_update=True)
        if self.role == Role.CUSTOMER and order.status != OrderStatus.PENDING:
            raise InvalidTransition(
                "Customers can only cancel pending orders",
                details={"current_status": order.status},
            )
        order.cancel(reason=reason)
        return order

    @transaction.atomic
    def update_address(
        self, order_id, shipping_address: dict | None, billing_address: dict | None
    ) -> Order:
        self.require_role(
            Role.CUSTOMER, message="Only the customer can change order addresses."
        )
        order = self.get_order(order_id, for_update=True)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransition(
                "Addresses can only be changed while the order is pending",
                details={"current_status": order.status},
            )
        changed = order.set_addresses(shipping_address, billing_address)
        if changed:
            order.save(update_fields=[*changed, "updated_at"])
        return order

    @transaction.atomic
    def delete(self, order_id) -> None:
        self.require_role(Role.ADMIN, message="Only administrators can delete orders.")
        order = self.get_order(order_id, for_update=True)
        if order.status != OrderStatus.CANCELLED:
            raise InvalidTransition(
                "Only cancelled orders can be deleted",
                details={"current_status": order.status},
            )
        order_number = order.order_number
        try:
            order.delete()
        except ProtectedError as e:
            raise InvalidTransition(
                "Order has payment records and cannot be deleted"
            ) from e
        logger.info("order_deleted", order_number=order_number, admin_id=str(self.user.pk))


def reconcile_order_stock(grace_minutes: int | None = None, dry_run: bool = False) -> dict:
    """
    Finish or compensate order placements whose stock step did not complete.

    Orders left without a stock commit are committed now, or cancelled when the
    stock is gone. Cancelled orders whose stock was never returned get it back.
    """
    if grace_minutes is None:
        grace_minutes = getattr(settings, "STOCK_RECONCILE_GRACE_MINUTES", 15)

    summary = {"committed": [], "cancelled": [], "released": [], "skipped": []}

    for order in Order.objects.awaiting_stock_commit(grace_minutes):
        if dry_run:
            summary["committed"].append(order.order_number)
            continue
        try:
            InventoryManager.commit_order_stock(order)
            summary["committed"].append(order.order_number)
        except OutOfStock as e:
            try:
                with transaction.atomic():
                    locked = Order.objects.select_for_update().get(pk=order.pk)
                    locked.cancel(reason="Stock reconciliation failed")
            except InvalidTransition as skipped:
                # moved past cancellable states before stock was taken
                summary["skipped"].append(order.order_number)
                logger.error(
                    "order_reconciliation_skipped",
                    order_number=order.order_number,
                    status=skipped.details.get("current_status"),
                    error=e.message,
                )
                continue
            summary["cancelled"].append(order.order_number)
            logger.warning(
                "order_cancelled_by_reconciliation",
                order_number=order.order_number,
                error=e.message,
            )

    for order in Order.objects.awaiting_stock_release():
        if not dry_run:
            InventoryManager.release_order_stock(order)
        summary["released"].append(order.order_number)

    logger.info(
        "order_stock_reconciled",
        dry_run=dry_run,
        committed=len(summary["committed"]),
        cancelled=len(summary["cancelled"]),
        released=len(summary["released"]),
        skipped=len(summary["skipped"]),
    )
    return summary
