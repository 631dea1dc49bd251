"""
Logging setup for the vesting CLI and embedding applications.

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers are attached here, once, by the application entry point.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from pythonjsonlogger import jsonlogger


class JSONFormatter(jsonlogger.JsonFormatter):
    """
    Formatter that outputs one JSON object per log line.

    Fields: UTC timestamp, level, logger, message, module, function, line,
    exception details when present, and every field passed via ``extra``.
    """

    def __init__(self, fmt: str = "%(message)s"):
        super().__init__(fmt=fmt, json_default=str)

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        exc_text = log_record.pop("exc_info", None)
        if record.exc_info:
            log_record["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": exc_text or self.formatException(record.exc_info),
            }


TEXT_FORMAT = "[%(asctime)s UTC] %(levelname)-8s %(name)s: %(message)s"


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a single stream handler to the ``token_vesting`` logger.

    Calling this again replaces the handler instead of stacking a duplicate.
    """
    package_logger = logging.getLogger("token_vesting")
    package_logger.setLevel(getattr(logging, level.upper()))

    for handler in list(package_logger.handlers):
        if getattr(handler, "_token_vesting_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._token_vesting_handler = True  # type: ignore[attr-defined]
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        formatter.converter = lambda *args: datetime.now(timezone.utc).timetuple()
        handler.setFormatter(formatter)
    package_logger.addHandler(handler)
    return package_logger
