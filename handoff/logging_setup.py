from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s:%(lineno)d | %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once. Level can be given explicitly or taken from
    LOG_LEVEL env var (default INFO). Records carry the worker thread name.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
