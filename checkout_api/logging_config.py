"""
Process-wide logging setup for the checkout service.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go and how they look.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"

_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """
    Configures the root logger with a single stdout handler.

    Serverless and container platforms collect stdout, so no file handler is
    installed. Calling this more than once replaces the previous handler
    instead of stacking duplicates.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # httpx logs every request line at INFO
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
