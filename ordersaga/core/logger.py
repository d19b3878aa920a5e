"""
Logger lookup shared by every ordersaga module.

Modules call ``get_logger(__name__)`` and get a stdlib logger under the
``ordersaga`` namespace, which ``setup_order_logging`` configures. An
application that routes its logs elsewhere can hand in its own object with
``set_logger``; it only needs the usual level methods.
"""

import logging
from typing import Any

# Replaces the stdlib loggers when set
_custom_logger: Any = None


class NullLogger:
    """Drops every message."""

    def _drop(self, *args, **kwargs) -> None:
        return None

    debug = info = warning = error = exception = critical = _drop


def set_logger(logger: Any) -> None:
    """
    Route ordersaga logging to another logger.

    Args:
        logger: Object with debug/info/warning/error/exception methods,
                or None to go back to the stdlib loggers.
    """
    global _custom_logger
    _custom_logger = logger


def get_logger(name: str = "ordersaga") -> Any:
    """The logger passed to set_logger(), or the stdlib logger called ``name``."""
    if _custom_logger is not None:
        return _custom_logger

    logger = logging.getLogger(name)

    # Library default: silent until the application configures handlers
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger

