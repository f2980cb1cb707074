"""
Logging configuration for applications embedding the editor.
"""
import logging

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Third-party loggers that are noisy at DEBUG
QUIET_LOGGERS = ("PIL", "fitz")


def configure_logging(level=logging.INFO) -> None:
    """
    Configure root logging for an application.

    Args:
        level: Level name or number for the root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))
