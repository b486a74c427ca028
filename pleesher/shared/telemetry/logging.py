"""Logging setup for applications embedding the client.

The library itself only emits records through get_logger(); it never
configures handlers on import. Call setup_logging() from a script or app
entry point to get readable output.
"""

import logging
import sys

from pleesher.core.config import get_settings

# httpx logs every request at INFO; keep it at WARNING unless debugging.
_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: int | None = None) -> None:
    """Configure root logging for the client.

    Level is DEBUG when settings.debug is True, otherwise INFO, unless
    level is given. Output goes to stdout.

    Args:
        level: Explicit log level overriding settings.debug.
    """
    settings = get_settings()
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)
    logging.getLogger("pleesher").setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
