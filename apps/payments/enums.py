# apps/payments/enums.py

from django.db import models


class PaymentMethod(models.TextChoices):
    UPI = "upi", "UPI"
    CARD = "card", "Card"
    NETBANKING = "netbanking", "Net banking"
    WALLET = "wallet", "Wallet"


class TransactionStatus(models.TextChoices):
    """Lifecycle of a single payment attempt."""

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
