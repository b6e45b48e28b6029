"""
Service Logger Setup

Configures stdlib logging for a microservice from LoggingConfig.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("order_service")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured_services = set()


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure the root handlers once per service and return the service logger.

    Args:
        service_name: Logger name, usually the service package name
        config: Logging configuration (loaded from environment if omitted)

    Returns:
        Logger named after the service
    """
    if config is None:
        config = LoggingConfig.from_env()

    logger = logging.getLogger(service_name)
    if service_name in _configured_services:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    root = logging.getLogger()
    root.setLevel(level)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet noisy client libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("nats").setLevel(logging.WARNING)

    _configured_services.add(service_name)
    logger.info(f"Logging configured for {service_name} ({config.environment}, level={config.log_level})")
    return logger
