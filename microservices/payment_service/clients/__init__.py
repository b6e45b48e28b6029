"""
Payment Service Clients

Outbound clients used by the payment service
"""

from .razorpay_client import RazorpayClient

__all__ = ["RazorpayClient"]
