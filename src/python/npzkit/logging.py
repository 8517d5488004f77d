# npzkit/logging.py
"""
Logging configuration for the npzkit package.

The level follows ``config.loglevel``, which can be set through the
NPZKIT_LOG_LEVEL environment variable.
"""

from __future__ import annotations

import logging

from .settings import config

logger = logging.getLogger(__name__.split(".")[0])

log_format = logging.Formatter("[%(asctime)s][%(levelname)s]: %(message)s")

stream_handler = logging.StreamHandler()  # default handler
stream_handler.setFormatter(log_format)

logger.setLevel(level=config.loglevel)
logger.handlers = [stream_handler]
