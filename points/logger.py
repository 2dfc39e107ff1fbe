import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from .config import get_settings


def setup_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Configure the service logger with a JSON stdout handler.

    ``name`` defaults to the configured service name and ``level`` to
    ``LOG_LEVEL``. The ``points`` package logger gets the same handler so
    module loggers created with ``logging.getLogger(__name__)`` are emitted;
    those still propagate to root handlers, only the service logger does not.
    """
    settings = get_settings()
    name = name or settings.service_name
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter())

    logger = logging.getLogger(name)
    for target in (logger, logging.getLogger("points")):
        target.setLevel(log_level)
        # replace rather than stack handlers when the app is rebuilt
        if target.handlers:
            target.handlers.clear()
        target.addHandler(handler)
    logger.propagate = False

    return logger


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
