"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from billfold.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Send every log record to stdout as one JSON object per line"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)

    # SQL statements only when explicitly debugging the ledger
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log_month_close(
    request_id: str,
    user_id: str,
    month: int,
    year: int,
    action: str,
    remaining_balance,
) -> None:
    """Log how a month's leftover balance was resolved"""
    logging.info(
        "Month close resolved",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "month_close",
            "period": f"{year}-{month:02d}",
            "action": action,
            "remaining_balance": str(remaining_balance),
        },
    )
