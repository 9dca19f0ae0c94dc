"""Process-wide logging setup."""
from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def configure_logging(log_level: str = "INFO") -> None:
    """Attach a stdout handler to the root logger once and set its level."""
    global _configured
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    # httpx logs every request at INFO, which drowns out the parser logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
