# apps/payments/gateway.py

"""
Client for the Razorpay payment gateway.

Wraps the official ``razorpay`` SDK. The client is built once from
``settings.PAYMENT_GATEWAY`` when the payments app is ready and handed to the
payment and refund services. Every call passes the configured timeout; SDK
errors and transport failures surface as ``GatewayError`` carrying the
gateway's own message.
"""

import razorpay
import requests
import structlog
from django.conf import settings
from razorpay.errors import BadRequestError
from razorpay.errors import GatewayError as RazorpayGatewayError
from razorpay.errors import ServerError, SignatureVerificationError

logger = structlog.get_logger(__name__)


class GatewayError(Exception):
    """The gateway rejected a call or could not be reached."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GatewayClient:
    def __init__(
        self,
        key_id,
        key_secret,
        base_url=None,
        timeout=30,
        merchant_name="",
        session=None,
    ):
        self.key_id = key_id
        self.timeout = timeout
        self.merchant_name = merchant_name
        options = {"base_url": base_url.rstrip("/")} if base_url else {}
        self.client = razorpay.Client(
            session=session, auth=(key_id, key_secret), **options
        )

    def __repr__(self):
        return f"GatewayClient(base_url={self.base_url!r}, key_id={self.key_id!r})"

    @property
    def base_url(self):
        return self.client.base_url

    def _call(self, operation, send, *args, **kwargs):
        try:
            return send(*args, timeout=self.timeout, **kwargs)
        except (BadRequestError, RazorpayGatewayError, ServerError) as e:
            message = str(e) or "Gateway request failed"
            logger.error(
                "gateway_rejected", operation=operation, gateway_message=message
            )
            raise GatewayError(message) from e
        except requests.Timeout as e:
            logger.error("gateway_timeout", operation=operation, timeout=self.timeout)
            raise GatewayError("Gateway request timed out") from e
        except ValueError as e:
            # requests' JSONDecodeError is also a RequestException
            logger.error("gateway_bad_response", operation=operation, error=str(e))
            raise GatewayError("Gateway returned an invalid response") from e
        except requests.RequestException as e:
            logger.error("gateway_unreachable", operation=operation, error=str(e))
            raise GatewayError(f"Gateway unreachable: {e}") from e

    # API

    def create_order(self, amount_minor, currency, receipt, notes=None):
        """Create a gateway order for ``amount_minor`` (paise)."""
        return self._call(
            "create_order",
            self.client.order.create,
            data={
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )

    def create_refund(self, payment_id, amount_minor, notes=None):
        return self._call(
            "create_refund",
            self.client.payment.refund,
            payment_id,
            {"amount": amount_minor, "notes": notes or {}},
        )

    def fetch_order_payments(self, gateway_order_id):
        """Payment attempts recorded by the gateway for one of its orders."""
        body = self._call(
            "fetch_order_payments", self.client.order.payments, gateway_order_id
        )
        return body.get("items", []) if isinstance(body, dict) else list(body)

    def verify_payment_signature(self, gateway_order_id, gateway_payment_id, signature):
        """HMAC-SHA256 of ``order_id|payment_id`` keyed with the secret."""
        if not (gateway_order_id and gateway_payment_id and signature):
            return False
        # compare_digest refuses non-ASCII str; such a signature can never match
        if not signature.isascii():
            return False
        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": gateway_order_id,
                    "razorpay_payment_id": gateway_payment_id,
                    "razorpay_signature": signature,
                }
            )
        except SignatureVerificationError:
            return False
        return True


_client = None


def build_gateway_client(config=None):
    config = config or settings.PAYMENT_GATEWAY
    return GatewayClient(
        key_id=config["KEY_ID"],
        key_secret=config["KEY_SECRET"],
        base_url=config.get("BASE_URL"),
        timeout=config.get("TIMEOUT", 30),
        merchant_name=config.get("MERCHANT_NAME", ""),
    )


def configure(client):
    global _client
    _client = client


def get_gateway_client():
    if _client is None:
        configure(build_gateway_client())
    return _client
