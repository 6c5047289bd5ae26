"""
Structured logging for the reconciliation engine.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional
from procure_recon.config import get_config


config = get_config()


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra"):
            log_obj.update(record.extra)

        return json.dumps(log_obj, default=str)


def setup_logging(name: str = __name__) -> logging.Logger:
    """Setup and return a configured logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL))

    # Modules call this at import time; attach handlers only once
    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    console_formatter = logging.Formatter(config.LOG_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler with structured JSON
    if config.LOG_FILE:
        file_handler = logging.FileHandler(config.LOG_FILE)
        file_handler.setLevel(getattr(logging, config.LOG_LEVEL))
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


def log_discrepancy(
    logger: logging.Logger,
    detail: Any,
    invoice_id: Optional[str] = None,
) -> None:
    """Log a detected discrepancy."""
    extra = {
        "type": "discrepancy",
        "discrepancy_type": detail.type,
        "invoice_id": invoice_id,
        "invoice_line_id": detail.invoice_line_id,
        "expected": str(detail.expected) if detail.expected is not None else None,
        "actual": str(detail.actual) if detail.actual is not None else None,
        "amount": str(detail.amount),
    }
    logger.info(
        f"Discrepancy detected: {detail.type} on line {detail.invoice_line_id} (amount {detail.amount})",
        extra={"extra": extra}
    )


def log_warning(
    logger: logging.Logger,
    warning: Any,
) -> None:
    """Log a non-fatal engine warning (insufficient data, ambiguous match)."""
    extra = {"type": "warning", "warning_kind": warning.kind}
    extra.update(warning.model_dump(mode="json", exclude={"kind", "message"}))
    logger.warning(
        f"[{warning.kind}] {warning.message}",
        extra={"extra": extra}
    )
