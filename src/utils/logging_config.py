"""Logging setup for the discovery service."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILE_PATH = "logs/service.log"


def setup_logging(*, debug: bool = False) -> None:
    """Configure Python logging.

    - Console output at INFO+ (or DEBUG+ when debug=True) for operational logs.
    - Rotating file output at DEBUG+ for deep diagnostics.
    - Consistent structured format for easier log parsing.
    """

    os.makedirs(os.path.dirname(LOG_FILE_PATH), exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        LOG_FILE_PATH, maxBytes=2_000_000, backupCount=5
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Avoid duplicate handlers when reloading in dev.
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


logger = logging.getLogger(__name__)
