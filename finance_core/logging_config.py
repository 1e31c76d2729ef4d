"""
Structured Logging Configuration Module

JSON log lines for the finance API. Managers log through `log_action`, which
tags each line with the acting user, the action name and the resource touched.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


STRUCTURED_FIELDS = ("user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unset structured fields are omitted"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "finance_core",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the application logger.

    Every module logs under the "finance_core" hierarchy, so one handler on
    the parent logger covers them all. Calling this again replaces the handler.

    Args:
        level: Log level name
        logger_name: Parent logger to configure
        log_format: "json" or "text"
        log_file: Write to this file instead of stderr

    Returns:
        The configured parent logger
    """
    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = "finance_core") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a domain event, e.g. action="debt_settled", resource="debt:<id>".

    Only the structured fields that are given end up on the record.
    """
    supplied = dict(zip(STRUCTURED_FIELDS, (user_id, action, resource, extra)))
    logger.log(getattr(logging, level.upper()), message,
               extra={name: value for name, value in supplied.items() if value})
