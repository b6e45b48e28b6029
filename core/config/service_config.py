#!/usr/bin/env python3
"""Order service main configuration

Combines all sub-configs for the order and payment services.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .payment_config import PaymentConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class OrderServiceConfig:
    """HTTP and storage settings for the order service"""
    service_name: str = "order_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8210
    order_schema: str = "orders"

    @classmethod
    def from_env(cls) -> 'OrderServiceConfig':
        return cls(
            service_name=os.getenv("SERVICE_NAME", "order_service"),
            service_host=os.getenv("SERVICE_HOST") or os.getenv("HOST", "0.0.0.0"),
            service_port=_int(os.getenv("SERVICE_PORT") or os.getenv("PORT", "8210"), 8210),
            order_schema=os.getenv("ORDER_SCHEMA", "orders"),
        )


@dataclass
class AppConfig:
    """Main configuration with all sub-configs"""

    environment: str = "development"

    service: OrderServiceConfig = field(default_factory=OrderServiceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load complete configuration from environment"""
        return cls(
            environment=os.getenv("ENV") or os.getenv("ENVIRONMENT", "development"),
            service=OrderServiceConfig.from_env(),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            payment=PaymentConfig.from_env(),
        )
