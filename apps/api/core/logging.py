"""
Structured logging configuration.

One JSON object per line in production, plain text locally. Every record
carries the process role ("api" or "worker") so API and dawn-task logs can
be told apart once they land in the same sink.

Structured context goes through ``extra={"extra_fields": {...}}``; the
dawn pipeline and the request middleware both use it.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import settings


# Engine modules that log one line per derived value; DEBUG there is noisy.
PIPELINE_LOGGERS = (
    "services.dawn_protocol",
    "services.smart_card_engine",
    "services.content_generator",
)


class JSONFormatter(logging.Formatter):
    """JSON formatter tagged with the process role."""

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "environment": settings.ENVIRONMENT,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(service: str = "api", level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger for one process.

    Args:
        service: process role written into every JSON record.
        level: overrides LOG_LEVEL (the worker passes Celery's loglevel).
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter(service)
    else:
        formatter = logging.Formatter(
            f"%(asctime)s [{service}] %(name)s %(levelname)s %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in ("sqlalchemy.engine", "httpx", "httpcore", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in PIPELINE_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))

    return root_logger
