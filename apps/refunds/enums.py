# apps/refunds/enums.py

from django.db import models


class RefundRequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"


class RefundReasonCategory(models.TextChoices):
    DUPLICATE = "duplicate", "Duplicate"
    NOT_AS_DESCRIBED = "not_as_described", "Not as described"
    DEFECTIVE = "defective", "Defective"
    WRONG_ITEM = "wrong_item", "Wrong item"
    OTHER = "other", "Other"


class RefundStatus(models.TextChoices):
    """Settlement of an accepted request through the gateway."""

    INITIATED = "initiated", "Initiated"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class RefundMethod(models.TextChoices):
    ORIGINAL_PAYMENT = "original_payment", "Original payment"
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    WALLET = "wallet", "Wallet"
