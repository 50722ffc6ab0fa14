# Overview: Process-wide logging setup applied by the app factory.

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Attach a single stream handler to the root logger.

    Safe to call more than once (tests build several apps); the handler is only
    installed the first time and later calls just adjust the level.
    """
    root = logging.getLogger()
    resolved = getattr(logging, str(level).upper(), logging.INFO)
    root.setLevel(resolved)

    if not any(getattr(h, "_flowstock", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._flowstock = True
        root.addHandler(handler)

    # SQL echo is controlled separately through SQLALCHEMY_ECHO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
