"""Logging utilities for the gateway."""

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Get a logger nested under the gateway namespace.

    Args:
        name: the name of the logger, which will be prefixed with 'context_gateway.'

    Returns:
        a configured logger instance
    """
    if not name.startswith("context_gateway"):
        name = f"context_gateway.{name}"
    return logging.getLogger(name)


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for the gateway.

    Log records always go to stderr; stdout may be carrying the local stream.

    Args:
        level: the log level to use
    """
    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
