"""Logging configuration for the Settlement domain.

Importing this module quiets the payment provider's SDK, which logs every
request at INFO. Process-wide handlers are set up by the entry points through
``ordering.utils.logging.configure_logging()``.
"""

import logging

import structlog

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
