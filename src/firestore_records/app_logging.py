"""Logging configuration helpers."""

import logging

_PACKAGE_LOGGER = "firestore_records"
_SDK_LOGGERS = ("google.cloud.firestore_v1", "google.api_core")


def parse_log_level(raw: str | None) -> int:
    """Parse a logging level name from env, defaulting to INFO."""
    if raw is None:
        return logging.INFO
    level = logging.getLevelName(raw.strip().upper())
    if isinstance(level, int):
        return level
    return logging.INFO


def configure_logging(level_name: str | None = None) -> None:
    """Route package logs to stderr at ``level_name``.

    Repeated calls only adjust the level. SDK loggers are held at WARNING so
    listener chatter from the Firestore watch threads stays out of the output.
    """
    level = parse_log_level(level_name)
    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(level)
    for sdk_logger in _SDK_LOGGERS:
        logging.getLogger(sdk_logger).setLevel(max(level, logging.WARNING))
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
