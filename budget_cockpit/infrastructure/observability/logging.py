"""Structured JSON logging for the cockpit API"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from budget_cockpit.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping timestamp, level and service name"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger to stdout as JSON"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_risk_evaluation(
    request_id: str,
    correlation_id: str,
    findings_count: int,
    error_kind: str | None,
    duration_ms: float,
) -> None:
    """Log one risk findings evaluation"""
    logging.info(
        "Risk evaluation completed",
        extra={
            "request_id": request_id,
            "correlation_id": correlation_id,
            "step": "risk_evaluation_complete",
            "outcome": "error" if error_kind else "ok",
            "error_kind": error_kind,
            "findings_count": findings_count,
            "duration_ms": duration_ms,
        },
    )


def log_projection(request_id: str, error_kind: str | None, duration_ms: float) -> None:
    logging.info(
        "Net worth projection completed",
        extra={
            "request_id": request_id,
            "step": "projection_complete",
            "outcome": "error" if error_kind else "ok",
            "error_kind": error_kind,
            "duration_ms": duration_ms,
        },
    )
