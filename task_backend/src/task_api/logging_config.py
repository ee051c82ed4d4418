from __future__ import annotations

import logging
from typing import Optional

_CONFIGURED = False


# PUBLIC_INTERFACE
def configure_logging(level: Optional[str] = None) -> None:
    """
    Install a single stream handler on the root logger and align uvicorn's
    loggers with it. Safe to call more than once; only the first call
    installs handlers, later calls only adjust the level.
    """
    global _CONFIGURED

    resolved_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(resolved_level)

    if _CONFIGURED:
        return

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.setLevel(resolved_level)
        logger.handlers.clear()
        logger.propagate = True

    _CONFIGURED = True
