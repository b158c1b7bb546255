"""
Logging setup — one stdout handler on the package logger.

    from cartsync import Settings, setup_logging

    setup_logging(Settings.from_env())   # CARTSYNC_LOG_LEVEL, CARTSYNC_LOG_FORMAT
    setup_logging(level="DEBUG")          # explicit override

httpx and httpcore are kept at WARNING so request chatter stays out of
the cart log.
"""

import logging
import sys

from cartsync.config import Settings


def setup_logging(
    settings: Settings | None = None,
    level: str | None = None,
    format_string: str | None = None,
) -> None:
    settings = settings or Settings()
    log_level = level or settings.log_level
    log_format = format_string or settings.log_format

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger("cartsync")
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("logging configured at %s", log_level)


__all__ = ("setup_logging",)
