"""Logging setup: one stderr handler with secret redaction."""

from __future__ import annotations

import logging
import re
import sys

_REDACT_PATTERN = re.compile(r"(?i)(authorization|token|api_key|x-api-key)=([^\s,;]+)")
_SECRET_MARKERS = ("authorization", "token", "api_key", "x-api-key")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RedactingFilter(logging.Filter):
    """Masks ``key=value`` secrets in the rendered log message."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        lowered = message.lower()
        if any(marker in lowered for marker in _SECRET_MARKERS):
            record.msg = _REDACT_PATTERN.sub(r"\1=[redacted]", message)
            record.args = ()
        return True


def configure_logging(level: str = "info", *, logger_name: str = "ccdev") -> logging.Logger:
    """Route the ``ccdev`` logger tree to stderr at *level*. Idempotent."""
    logger = logging.getLogger(logger_name)
    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RedactingFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level or "info").upper(), logging.INFO))
    logger.propagate = False
    return logger
