"""
Logging utilities for the token store and its operator tooling.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the service-wide format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


__all__ = ["configure_logging"]
