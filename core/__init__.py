#!/usr/bin/env python3
"""
Core Module for the Order Platform Microservices

Shared infrastructure for the order and payment services.

COMPONENTS:
    - config/: Dataclass configuration loaded from environment (python-dotenv)
    - logger.py: Service logger setup
    - nats_client.py: NATS JetStream event bus for notifications

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger(settings.service.service_name, settings.logging)
"""

__version__ = "1.0.0"
