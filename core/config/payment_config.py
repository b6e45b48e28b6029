#!/usr/bin/env python3
"""Payment gateway configuration

Razorpay credentials and gateway call settings. The key secret signs the
checkout callback, the webhook secret signs webhook deliveries; they are
distinct values in the Razorpay dashboard.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class PaymentConfig:
    """Razorpay gateway settings"""
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    api_url: str = "https://api.razorpay.com/v1"
    timeout_seconds: float = 15.0
    default_currency: str = "INR"

    @property
    def gateway_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @classmethod
    def from_env(cls) -> 'PaymentConfig':
        """Load payment config from environment variables"""
        return cls(
            key_id=os.getenv("RAZORPAY_KEY_ID"),
            key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
            webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET"),
            api_url=os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1"),
            timeout_seconds=_float(os.getenv("PAYMENT_GATEWAY_TIMEOUT", "15"), 15.0),
            default_currency=os.getenv("DEFAULT_CURRENCY", "INR"),
        )
