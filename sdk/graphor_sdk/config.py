"""
Configuration for Graphor SDK.

Settings are read from environment variables prefixed with ``GRAPHOR_``
(e.g. ``GRAPHOR_DGRAPH_HOST``), falling back to the defaults below.
"""

import logging

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Graphor configuration."""

    # Dgraph alpha
    dgraph_host: str = Field(default="localhost")
    dgraph_port: int = Field(default=9080)
    query_timeout: float | None = Field(default=None, description="Per-request timeout in seconds")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", pattern="^(text|json)$")

    # Log every compiled query at INFO level
    debug_queries: bool = Field(default=False)

    model_config = {"env_prefix": "GRAPHOR_"}

    @property
    def dgraph_endpoint(self) -> str:
        return f"{self.dgraph_host}:{self.dgraph_port}"


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: Graphor configuration
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("grpc").setLevel(logging.WARNING)
