# apps/core/utils.py

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

import structlog
from django.conf import settings
from djmoney.money import Money

logger = structlog.get_logger(__name__)

TWO_PLACES = Decimal("0.01")


def clean_price_value(price: Union[str, Money, Decimal, float, int, None]) -> Decimal:
    """
    Convert a price in any supported format to a two-place Decimal.

    Args:
        price: Money, Decimal, number or numeric string

    Returns:
        Decimal: Quantized value

    Raises:
        ValueError: If price cannot be converted to Decimal
    """
    if price is None:
        return Decimal("0.00")

    if isinstance(price, Money):
        return quantize_amount(price.amount)

    try:
        if isinstance(price, float):
            value = Decimal(str(price))
        else:
            value = Decimal(str(price).strip() if isinstance(price, str) else price)
    except (InvalidOperation, TypeError, ValueError) as e:
        logger.warning("price_conversion_failed", value=repr(price))
        raise ValueError(f"Could not convert {price!r} to Decimal") from e

    return quantize_amount(value)


def quantize_amount(value: Decimal) -> Decimal:
    """Round half-up to the currency's two decimal places."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, rate: Decimal) -> Decimal:
    return quantize_amount(Decimal(amount) * Decimal(rate))


def create_money_from_price(
    price: Union[str, Money, Decimal, float, int, None], currency: str = None
) -> Money:
    """Build a Money in the marketplace currency from any price format."""
    currency = currency or settings.DEFAULT_CURRENCY
    if isinstance(price, Money) and str(price.currency) == currency:
        return price
    return Money(clean_price_value(price), currency)


def to_minor_units(amount: Union[Money, Decimal]) -> int:
    """Convert a major-unit amount (rupees) to the gateway's minor unit (paise)."""
    value = clean_price_value(amount)
    return int((value * 100).to_integral_value(rounding=ROUND_HALF_UP))
