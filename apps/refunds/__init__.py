"""Refund requests and their settlement through the payment gateway."""
