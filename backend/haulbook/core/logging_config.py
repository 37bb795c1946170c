"""
Logging setup shared by the API process and maintenance scripts.
"""
import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict

from haulbook.core.config import settings


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "application": settings.APP_NAME,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def configure_logging(level: str = None) -> None:
    """Configure root logging from settings. Safe to call more than once."""
    level = (level or settings.LOG_LEVEL).upper()
    formatter = "json" if settings.LOG_JSON else "plain"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "sqlalchemy.engine": {
                "level": "INFO" if settings.DB_ECHO else "WARNING",
            },
        },
    })
