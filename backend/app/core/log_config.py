"""Logging setup.

Readable lines while developing, one JSON object per line in production so the
floor logs can be filtered by tablet or screen channel.
"""

import json
import logging
import sys

from app.core.config import settings

# Attributes passed through ``extra=`` that are copied into JSON lines
CONTEXT_FIELDS = ("device_id", "channel", "screen", "feed")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(debug: bool = settings.debug, level: str = settings.log_level) -> logging.Handler:
    """Replace the root handlers with a single stream handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    if debug:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())

    root_logger.addHandler(handler)
    return handler
