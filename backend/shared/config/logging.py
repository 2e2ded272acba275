"""
Structured logging for the POS checkout service.

Every logger accepts keyword context:

    logger.info("Order certified", table_number=4, order_id="o12")

Production writes one JSON object per line; development writes a coloured
single line. Request and checkout IDs are attached to each record by the
CorrelationIdFilter installed in setup_logging().
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import Settings, get_settings
from shared.infrastructure.correlation import CorrelationIdFilter

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _correlation(record: logging.LogRecord) -> dict[str, str]:
    ids = {}
    for attr in ("request_id", "checkout_id"):
        value = getattr(record, attr, None)
        if value and value != "-":
            ids[attr] = value
    return ids


class StructuredFormatter(logging.Formatter):
    """JSON lines for log aggregation."""

    def __init__(self, include_source: bool = False):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_correlation(record),
        }
        fields = getattr(record, "fields", None)
        if fields:
            payload["data"] = fields
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if self.include_source:
            payload["source"] = f"{record.filename}:{record.lineno} {record.funcName}"
        return json.dumps(payload, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Coloured, human-readable lines."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        ids = _correlation(record)
        tags = []
        if "request_id" in ids:
            tags.append(ids["request_id"][:8])
        if "checkout_id" in ids:
            tags.append(f"co:{ids['checkout_id'][:8]}")
        prefix = f"{self.DIM}[{' '.join(tags)}]{self.RESET} " if tags else ""

        line = f"{color}{when} {record.levelname:<8}{self.RESET} {prefix}{record.name}: {record.getMessage()}"

        fields = getattr(record, "fields", None)
        if fields:
            line += "  " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose level methods take keyword context besides the message."""

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["fields"] = fields or None
        # One extra frame: this override sits between the caller and logging
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging(settings: Settings | None = None) -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    if settings.environment == "production":
        handler.setFormatter(StructuredFormatter(include_source=settings.debug))
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_phone(phone: str | None) -> str:
    """Keep the last 4 digits only: "0612345678" -> "******5678"."""
    if not phone:
        return "<no-phone>"
    phone = phone.strip()
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]


pos_api_logger = get_logger("pos_checkout")
checkout_logger = get_logger("pos_checkout.checkout")
tables_logger = get_logger("pos_checkout.tables")
customers_logger = get_logger("pos_checkout.customers")
backend_logger = get_logger("pos_checkout.backend")
