"""
Payment Service

Razorpay settlement for food orders.

Features:
- Checkout callback verification (HMAC, amount, currency, capture state)
- Webhook reconciliation for captured, failed and refunded payments
- Refund initiation on cancellation
- COD payment confirmation
"""

__version__ = "1.0.0"
