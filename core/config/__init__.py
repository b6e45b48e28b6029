#!/usr/bin/env python3
"""Modular configuration system for the order service

Configuration hierarchy:
- service_config: HTTP identity plus the aggregate AppConfig
- infra_config: PostgreSQL and NATS endpoints
- payment_config: Razorpay credentials and gateway timeouts
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .payment_config import PaymentConfig
from .service_config import AppConfig, OrderServiceConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = AppConfig.from_env()

def get_settings() -> AppConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AppConfig:
    """Reload settings from environment"""
    global settings
    settings = AppConfig.from_env()
    return settings

__all__ = [
    'AppConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'OrderServiceConfig',
    'LoggingConfig',
    'InfraConfig',
    'PaymentConfig',
]
