"""JSON logging for the certificate provisioning tool.

Logs go to stderr so they stay out of the interactive prompts on stdout.
Environment overrides:

    CERT_TOOL_LOG_LEVEL   logging level name (default INFO)
    CERT_TOOL_LOG_FILE    append JSON logs to this file instead of stderr
"""

import logging
import os

from pythonjsonlogger import jsonlogger

ALLOWED_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno", "unit"})


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter limited to ALLOWED_FIELDS.

    ``unit`` is only present when a caller passes ``extra={"unit": ...}``.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        for key in [key for key in log_record if key not in ALLOWED_FIELDS]:
            log_record.pop(key)


def _build_handler() -> logging.Handler:
    log_file = os.environ.get("CERT_TOOL_LOG_FILE")
    if log_file:
        return logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8")
    return logging.StreamHandler()


def _setup_logger() -> logging.Logger:
    """Initialize and configure singleton logger.

    Returns:
        Configured logger with CustomJsonFormatter
    """
    logger = logging.getLogger("cert_provisioning")

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = _build_handler()
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )

    level_name = os.environ.get("CERT_TOOL_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.addHandler(handler)
    logger.propagate = False

    return logger


# Singleton logger instance - import this in other modules
LOGGER = _setup_logger()
