"""Process-wide logging configuration for CLI entry points."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def config_configure_logging(level_name: str = "INFO") -> None:
    """Configure root logging once for the current process.

    Args:
        level_name: Logging level name (`DEBUG`, `INFO`, ...). Unknown names fall back to INFO.

    Returns:
        None: Configures the root logger as side effect.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    level = logging.getLevelName(level_name.strip().upper() or "INFO")
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT, force=True)
    # httpx logs every request at INFO; keep health polling output readable.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
