# apps/orders/tasks.py

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction

from apps.orders.models import Order
from apps.orders.services import reconcile_order_stock

logger = structlog.get_logger(__name__)

UNPAID_CANCELLATION_REASON = "Automatically cancelled due to non-payment"


@shared_task(bind=True, max_retries=3)
def cancel_unpaid_orders(self, hours=None):
    """Cancel pending orders that were never paid within the timeout."""
    if hours is None:
        hours = getattr(settings, "UNPAID_ORDER_TIMEOUT_HOURS", 24)

    try:
        cancelled = []
        for order_id in Order.objects.unpaid_older_than(hours).values_list(
            "id", flat=True
        ):
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order_id)
                # Paid or moved on since the listing query
                if not order.is_awaiting_payment:
                    continue
                order.cancel(reason=UNPAID_CANCELLATION_REASON)
                cancelled.append(order.order_number)

        logger.info(f"Cancelled {len(cancelled)} unpaid orders", order_numbers=cancelled)
        return len(cancelled)

    except Exception as exc:
        logger.error(f"Failed to cancel unpaid orders: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))


@shared_task(bind=True, max_retries=3)
def reconcile_order_stock_task(self, grace_minutes=None):
    """Complete or compensate stock steps left unfinished by interrupted placements."""
    try:
        summary = reconcile_order_stock(grace_minutes=grace_minutes)
        return {key: len(value) for key, value in summary.items()}
    except Exception as exc:
        logger.error(f"Failed to reconcile order stock: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))
