"""Process-wide logging setup."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    # basicConfig is a no-op once handlers exist; the level still follows settings.
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("ztnet").setLevel(level)
