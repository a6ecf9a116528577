# apps/payments/__init__.py

"""
Payments app: gateway checkout, signature verification and reconciliation.
"""
