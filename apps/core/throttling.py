# apps/core/throttling.py

"""
Throttling for endpoints that reach the payment gateway.
"""

import structlog
from rest_framework.throttling import UserRateThrottle

logger = structlog.get_logger(__name__)


class PaymentRateThrottle(UserRateThrottle):
    """
    Tighter limit for payment initiation, verification and refund settlement.
    Every request here may result in a gateway call.
    """

    scope = "payments"

    def allow_request(self, request, view):
        result = super().allow_request(request, view)

        if not result and request.user.is_authenticated:
            logger.warning(
                "payment_throttled",
                user_id=str(request.user.pk),
                view=view.__class__.__name__,
            )

        return result
