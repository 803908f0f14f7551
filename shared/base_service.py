"""
Base service class for Concert Access Layer services.
"""

import time
from typing import Optional

from prometheus_client import CollectorRegistry

from shared.config import get_config, ServiceConfig
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: Optional[ServiceConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.config = config or get_config(service_name)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name, registry)
        self._start_time = time.time()

        # Configure logging
        configure_logging(service_name, self.config.log_level, json_output=self.config.log_json)

    def get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def describe(self) -> dict:
        """Describe the running service."""
        return {
            "service": self.service_name,
            "env": self.config.env,
            "uptime_seconds": self.get_uptime(),
            "version": "1.0.0"
        }
